"""
Billing Router - webhook, checkout redirect, checkout return and the
access-check API
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from backend.utils.pages import payment_failed_page
from backend.utils.responses import error_response, html_response, json_response
from dependencies import Clock, get_billing_service, get_clock
from models.entitlement import CheckAccessRequest, CheckAccessResponse
from services.billing_service import BillingService
from services.errors import AuthError, MalformedEvent, ValidationError

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = ("succeeded", "active")

billing_router = APIRouter(tags=["billing"])


@billing_router.post("/api/webhook")
async def payment_webhook(
    request: Request,
    billing_service: BillingService = Depends(get_billing_service),
    clock: Clock = Depends(get_clock),
):
    """
    Handle payment provider webhook events with signature verification.

    - 200 {"status": "success", "email"} once the event is applied
    - 200 {"status": "success", "warning": "no email"} for events without
      a customer email, so the provider does not retry them forever
    - 400 {"error"} when verification fails; nothing is written
    - 500 {"error"} when the store fails; the provider retries
    """
    payload = await request.body()
    logger.info("Received webhook payload")

    try:
        event, _ = await billing_service.process_webhook(payload, request.headers, clock())
    except AuthError as e:
        return error_response(e.message, status=e.status_code)
    except MalformedEvent:
        return json_response({"status": "success", "warning": "no email"})

    return json_response({"status": "success", "email": event.identity})


@billing_router.get("/checkout")
async def checkout(
    request: Request,
    email: Optional[str] = None,
    billing_service: BillingService = Depends(get_billing_service),
):
    """Redirect to the hosted checkout page for the product."""
    origin = str(request.base_url).rstrip("/")
    checkout_url = billing_service.build_checkout_url(email, origin)
    logger.info(f"Redirecting to checkout: {checkout_url}")
    return RedirectResponse(checkout_url, status_code=302)


@billing_router.get("/success")
async def checkout_success(request: Request, status: Optional[str] = None, email: Optional[str] = None):
    """Checkout return URL: back to the app on success, failure page otherwise."""
    customer_email = email or ""
    logger.info(f"Checkout returned with status: {status}, email: {customer_email}")

    if status not in SUCCESS_STATUSES:
        return html_response(payment_failed_page(status, customer_email), status=400)

    home_url = request.url_for("home")
    if customer_email:
        home_url = home_url.include_query_params(email=customer_email)
    return RedirectResponse(str(home_url), status_code=302)


@billing_router.post("/api/check-access")
async def check_access(
    request: Request,
    billing_service: BillingService = Depends(get_billing_service),
    clock: Clock = Depends(get_clock),
):
    """
    Report the caller's current access.

    Returns:
        {"hasAccess": bool, "type": "paid" | "trial" | "expired", "expiresAt"?: ISO-8601}
    """
    try:
        body = CheckAccessRequest.model_validate(await request.json())
        if not body.email or not body.email.strip():
            raise ValidationError("no_email")
    except (ValueError, PydanticValidationError, ValidationError):
        return json_response({"hasAccess": False, "reason": "no_email"}, status=400)

    decision = await billing_service.check_access(body.email, clock())

    response = CheckAccessResponse(
        has_access=decision.has_access,
        type=decision.kind.value if decision.has_access else "expired",
        expires_at=decision.expires_at.isoformat() if decision.expires_at else None,
    )
    return json_response(response.model_dump(by_alias=True, exclude_none=True))
