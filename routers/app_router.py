"""
App Router - the browser-facing home page. Shows the dashboard, the
paywall or the email form depending on the visitor's access.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from backend.utils.pages import app_page, email_form_page, expired_page
from backend.utils.responses import html_response
from dependencies import Clock, get_billing_service, get_clock
from models.entitlement import AccessKind
from services.billing_service import BillingService

logger = logging.getLogger(__name__)

app_router = APIRouter(tags=["app"])


@app_router.get("/", name="home")
async def home(
    email: Optional[str] = None,
    billing_service: BillingService = Depends(get_billing_service),
    clock: Clock = Depends(get_clock),
):
    if not email or not email.strip():
        return html_response(email_form_page())
    email = email.strip()

    logger.info(f"Checking access for: {email}")
    _, decision = await billing_service.resolve_page_access(email, clock())

    if decision.kind is AccessKind.NONE:
        return html_response(expired_page(email))
    return html_response(app_page(email, decision.kind.value, decision.expires_at))
