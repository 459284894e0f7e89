"""
Billing Service - ties the webhook interpreter, reconciliation, trial and
access evaluation to the entitlement store, and builds checkout links.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Tuple, Union
from urllib.parse import quote, urlencode, urlsplit, urlunsplit, parse_qsl

from config.settings import Settings
from models.entitlement import AccessDecision, AccessKind, BillingEvent, EntitlementRecord
from services.access_service import evaluate
from services.entitlement_store import EntitlementStore
from services.reconciliation_service import reconcile
from services.trial_service import TrialService
from services.webhook_service import interpret

logger = logging.getLogger(__name__)

LIVE_CHECKOUT_URL = "https://checkout.dodopayments.com/buy"
TEST_CHECKOUT_URL = "https://test.checkout.dodopayments.com/buy"


class BillingService:
    """
    Service class for the entitlement state machine.
    Stateless between requests: everything durable lives in the store.
    """

    def __init__(self, store: EntitlementStore, settings: Settings):
        """
        Initialize the billing service.

        Args:
            store: EntitlementStore for per-user records
            settings: application Settings (webhook secret, checkout config, trial length)
        """
        self.store = store
        self.settings = settings
        self.trial_duration = timedelta(hours=settings.trial_duration_hours)
        self.trials = TrialService(store, self.trial_duration)

    async def process_webhook(
        self,
        raw_body: Union[str, bytes],
        headers: Mapping[str, str],
        now: Optional[datetime] = None,
    ) -> Tuple[BillingEvent, EntitlementRecord]:
        """
        Verify, interpret and apply one webhook delivery.

        The read-modify-write goes through ``store.update`` so concurrent
        deliveries for the same user cannot lose each other's effect.

        Raises:
            AuthError: verification failed, nothing is written
            MalformedEvent: no identity, nothing is written
            StoreUnavailable: store failure
        """
        event = interpret(raw_body, headers, self.settings.webhook_secret, now)
        logger.info(f"Processing {event.kind.value} for email: {event.identity}")
        record = await self.store.update(event.identity, lambda current: reconcile(current, event))
        logger.info(f"Data saved for {event.identity}")
        return event, record

    async def check_access(self, email: str, now: Optional[datetime] = None) -> AccessDecision:
        """
        Read-only access decision for the API. Never starts a trial.
        """
        now = now or datetime.now(timezone.utc)
        record = await self.store.get(email)
        return evaluate(record, now, self.trial_duration)

    async def resolve_page_access(
        self, email: str, now: Optional[datetime] = None
    ) -> Tuple[EntitlementRecord, AccessDecision]:
        """
        Access decision for a page view, starting the trial on a first visit.
        """
        now = now or datetime.now(timezone.utc)
        record = await self.store.get(email)
        if record is None:
            record = await self.trials.ensure_trial(email, now)
        elif record.trial_started is None and evaluate(record, now, self.trial_duration).kind is not AccessKind.PAID:
            record = await self.trials.start_trial(email, now)
        return record, evaluate(record, now, self.trial_duration)

    def build_checkout_url(self, email: Optional[str], origin: str) -> str:
        """
        Build the hosted checkout link. The provider redirects back to the
        return URL and appends ``status``.
        """
        base_url = LIVE_CHECKOUT_URL if self.settings.is_live_checkout else TEST_CHECKOUT_URL
        return_url = self.settings.checkout_return_url or f"{origin.rstrip('/')}/success"
        if email:
            return_url = _append_query(return_url, {"email": email})

        checkout_url = f"{base_url}/{self.settings.product_id}?quantity=1&redirect_url={quote(return_url, safe='')}"
        if email:
            checkout_url += f"&email={quote(email, safe='')}"
        return checkout_url


def _append_query(url: str, params: Mapping[str, str]) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
