"""
Entitlement Record Store - maps a user identity (email) to its serialized
EntitlementRecord in a key-value store.

Two backends share one interface:
- RedisEntitlementStore: production, redis.asyncio with WATCH/MULTI
  compare-and-swap for read-modify-write
- InMemoryEntitlementStore: tests and local development, per-identity locks
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Union

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from models.entitlement import EntitlementRecord
from services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Mutation applied to the current record (None for a new user)
RecordMutation = Callable[[Optional[EntitlementRecord]], EntitlementRecord]

MAX_CAS_RETRIES = 5


def normalize_identity(identity: str) -> str:
    return identity.strip().lower()


class EntitlementStore(ABC):
    """
    Narrow get/put interface over the key-value store.

    Absence of a record is a valid state (new user) and is returned as None.
    """

    @abstractmethod
    async def get(self, identity: str) -> Optional[EntitlementRecord]:
        ...

    @abstractmethod
    async def put(self, identity: str, record: EntitlementRecord) -> None:
        ...

    @abstractmethod
    async def create_if_absent(self, identity: str, record: EntitlementRecord) -> EntitlementRecord:
        """Store ``record`` only if nothing is stored yet; return whichever record is stored."""

    @abstractmethod
    async def update(self, identity: str, mutate: RecordMutation) -> EntitlementRecord:
        """Atomically apply ``mutate`` to the stored record and persist the result."""


class InMemoryEntitlementStore(EntitlementStore):

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.writes = 0

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get(self, identity: str) -> Optional[EntitlementRecord]:
        raw = self._records.get(normalize_identity(identity))
        return EntitlementRecord.from_json(raw) if raw is not None else None

    async def put(self, identity: str, record: EntitlementRecord) -> None:
        self._records[normalize_identity(identity)] = record.to_json()
        self.writes += 1

    async def create_if_absent(self, identity: str, record: EntitlementRecord) -> EntitlementRecord:
        key = normalize_identity(identity)
        async with self._lock_for(key):
            existing = await self.get(key)
            if existing is not None:
                return existing
            await self.put(key, record)
            return record

    async def update(self, identity: str, mutate: RecordMutation) -> EntitlementRecord:
        key = normalize_identity(identity)
        async with self._lock_for(key):
            record = mutate(await self.get(key))
            await self.put(key, record)
            return record


class RedisEntitlementStore(EntitlementStore):

    def __init__(self, client: redis.Redis, key_prefix: str = "entitlement:"):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "entitlement:") -> "RedisEntitlementStore":
        return cls(redis.from_url(redis_url, decode_responses=True), key_prefix)

    def _get_redis_key(self, identity: str) -> str:
        return f"{self.key_prefix}{normalize_identity(identity)}"

    @staticmethod
    def _decode(raw: Optional[Union[str, bytes]]) -> Optional[EntitlementRecord]:
        return EntitlementRecord.from_json(raw) if raw is not None else None

    async def get(self, identity: str) -> Optional[EntitlementRecord]:
        try:
            return self._decode(await self.client.get(self._get_redis_key(identity)))
        except RedisError as e:
            logger.error(f"Redis read failed for {identity}: {e}")
            raise StoreUnavailable("Entitlement store unavailable") from e

    async def put(self, identity: str, record: EntitlementRecord) -> None:
        try:
            await self.client.set(self._get_redis_key(identity), record.to_json())
        except RedisError as e:
            logger.error(f"Redis write failed for {identity}: {e}")
            raise StoreUnavailable("Entitlement store unavailable") from e

    async def create_if_absent(self, identity: str, record: EntitlementRecord) -> EntitlementRecord:
        key = self._get_redis_key(identity)
        try:
            created = await self.client.set(key, record.to_json(), nx=True)
            if created:
                return record
            existing = self._decode(await self.client.get(key))
        except RedisError as e:
            logger.error(f"Redis create failed for {identity}: {e}")
            raise StoreUnavailable("Entitlement store unavailable") from e
        # Deleted between SET NX and GET; nothing else ever deletes records
        return existing if existing is not None else record

    async def update(self, identity: str, mutate: RecordMutation) -> EntitlementRecord:
        key = self._get_redis_key(identity)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for attempt in range(MAX_CAS_RETRIES):
                    try:
                        await pipe.watch(key)
                        record = mutate(self._decode(await pipe.get(key)))
                        pipe.multi()
                        pipe.set(key, record.to_json())
                        await pipe.execute()
                        return record
                    except WatchError:
                        logger.info(f"Concurrent update on {key}, retrying ({attempt + 1}/{MAX_CAS_RETRIES})")
                        continue
        except RedisError as e:
            logger.error(f"Redis update failed for {identity}: {e}")
            raise StoreUnavailable("Entitlement store unavailable") from e
        raise StoreUnavailable(f"Could not update entitlement record after {MAX_CAS_RETRIES} attempts")

    async def close(self) -> None:
        await self.client.aclose()
