"""
Trial Service for granting the free trial window on a user's first visit
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from models.entitlement import EntitlementRecord
from services.access_service import TRIAL_DURATION
from services.entitlement_store import EntitlementStore

logger = logging.getLogger(__name__)


class TrialService:
    """
    Service for managing user trial periods.
    Handles trial start and validation logic.
    """

    def __init__(self, store: EntitlementStore, trial_duration: timedelta = TRIAL_DURATION):
        """
        Initialize the trial service with the entitlement store.

        Args:
            store: EntitlementStore holding the per-user records
            trial_duration: length of the trial window
        """
        self.store = store
        self.trial_duration = trial_duration

    async def ensure_trial(self, identity: str, now: Optional[datetime] = None) -> EntitlementRecord:
        """
        Create the initial trial record for a user who has none.

        The create is atomic, so two concurrent first visits end up with the
        same ``trial_started``. Called from access checks only, never from
        webhook handling.

        Args:
            identity: user's email address
            now: trial start time, defaults to the current UTC time

        Returns:
            The stored record (the existing one if a record was already there)
        """
        now = now or datetime.now(timezone.utc)
        record = await self.store.create_if_absent(identity, EntitlementRecord(trial_started=now))
        if record.trial_started == now:
            logger.info(f"Started trial for {identity}")
        return record

    async def start_trial(self, identity: str, now: Optional[datetime] = None) -> EntitlementRecord:
        """
        Start a trial for a user whose record exists but has no trial yet
        (a payment event arrived before any visit). Only sets
        ``trial_started`` if it is currently None.

        Args:
            identity: user's email address
            now: trial start time, defaults to the current UTC time
        """
        now = now or datetime.now(timezone.utc)

        def _start(current: Optional[EntitlementRecord]) -> EntitlementRecord:
            record = current if current is not None else EntitlementRecord()
            if record.trial_started is not None:
                return record
            logger.info(f"Started trial for {identity}")
            return record.model_copy(update={"trial_started": now})

        return await self.store.update(identity, _start)
