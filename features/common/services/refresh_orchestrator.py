import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional

from features.common.exceptions.engine_exceptions import EngineError, PersistFailed
from features.common.models.record_types import CacheRecord, RecordKey, RecordState
from features.common.services.key_owner import KeyOwner, KeyOwnerRegistry
from features.common.services.record_store import RETENTION_HORIZON, RecordStore

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
Pipeline = Callable[[], Awaitable[Payload]]
Clock = Callable[[], datetime]

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class RefreshOrchestrator:
    """Read-through cache over a RecordStore.

    A read serves the latest record while it is within the freshness window.
    Otherwise it runs the refresh pipeline for the key, stores the result and
    returns it. If the pipeline fails, the previous record is served as long
    as it is younger than the retention horizon.

    All work for a key runs under that key's owner lock; different keys do
    not block each other.
    """

    def __init__(
        self,
        store: RecordStore,
        ttl: timedelta,
        clock: Clock = utc_now,
        retention: timedelta = RETENTION_HORIZON
    ):
        self.store = store
        self.ttl = ttl
        self.owners = KeyOwnerRegistry(ttl, name=store.table)
        self.clock = clock
        self.retention = retention

    def state_of(self, record: Optional[CacheRecord], now: datetime, ttl: timedelta) -> RecordState:
        if record is None or now - record.timestamp > ttl:
            return RecordState.STALE_OR_MISSING
        return RecordState.FRESH

    def state(self, key: RecordKey) -> RecordState:
        """Current state of a key, evaluated without refreshing."""
        owner = self.owners.peek(key)
        if owner is not None and owner.state is RecordState.REFRESHING:
            return owner.state
        return self.state_of(self.store.latest(key), self.clock(), self.ttl)

    def servable(self, record: Optional[CacheRecord]) -> Optional[CacheRecord]:
        """Record if it is still inside the retention horizon, else None."""
        if record is None:
            return None
        if self.clock() - record.timestamp > self.retention:
            return None
        return record

    async def get_latest(self, key: RecordKey, pipeline: Pipeline) -> Optional[CacheRecord]:
        """Latest record for key, refreshing first when it is stale or missing."""
        async with self.owners.hold(key) as owner:
            record = self.store.latest(key)
            owner.state = self.state_of(record, self.clock(), owner.ttl)
            if owner.state is RecordState.FRESH:
                return record

            try:
                return await self._run_pipeline(owner, pipeline)
            except EngineError as e:
                logger.warning(f"⚠️ Refresh failed for {self.store.table} {key}: {e}")
            except Exception as e:
                logger.error(f"❌ Unexpected error refreshing {self.store.table} {key}: {str(e)}")

            fallback = self.servable(record)
            if fallback is None:
                logger.info(f"No data available for {self.store.table} {key}")
            return fallback

    async def refresh(self, key: RecordKey, pipeline: Pipeline) -> CacheRecord:
        """Run the refresh pipeline for key regardless of freshness.

        Raises:
            EngineError: the pipeline or the write failed
        """
        async with self.owners.hold(key) as owner:
            return await self._run_pipeline(owner, pipeline)

    async def write(self, key: RecordKey, payload: Payload) -> CacheRecord:
        """Store a caller-supplied payload for key.

        Raises:
            PersistFailed: the record could not be written
        """
        async with self.owners.hold(key) as owner:
            return self._persist(owner, payload)

    async def _run_pipeline(self, owner: KeyOwner, pipeline: Pipeline) -> CacheRecord:
        owner.state = RecordState.REFRESHING
        try:
            payload = await pipeline()
            return self._persist(owner, payload)
        finally:
            if owner.state is RecordState.REFRESHING:
                owner.state = RecordState.STALE_OR_MISSING

    def _persist(self, owner: KeyOwner, payload: Payload) -> CacheRecord:
        timestamp = self.clock()
        self.store.append(owner.key, payload, timestamp)
        owner.state = RecordState.FRESH

        try:
            self.store.evict_older_than(self.retention, now=timestamp)
        except PersistFailed as e:
            logger.warning(f"⚠️ {e}")

        return CacheRecord(key=owner.key, payload=dict(payload), timestamp=timestamp)
