"""
FastAPI dependency providers. Tests swap these via app.dependency_overrides.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends

from config.settings import Settings, settings
from services.billing_service import BillingService
from services.entitlement_store import EntitlementStore, RedisEntitlementStore
from services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_store: Optional[EntitlementStore] = None


def get_settings() -> Settings:
    return settings


def get_store(app_settings: Settings = Depends(get_settings)) -> EntitlementStore:
    """Shared Redis-backed store; raises StoreUnavailable when REDIS_URL is unset."""
    global _store
    if _store is None:
        if not app_settings.redis_url:
            logger.error("Entitlement store is not bound (REDIS_URL not set)")
            raise StoreUnavailable("Entitlement store is not bound. Please check REDIS_URL.")
        _store = RedisEntitlementStore.from_url(app_settings.redis_url, app_settings.key_prefix)
    return _store


async def close_store() -> None:
    global _store
    if isinstance(_store, RedisEntitlementStore):
        await _store.close()
    _store = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    return utc_now


def get_billing_service(
    store: EntitlementStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> BillingService:
    return BillingService(store, app_settings)
