import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import AsyncIterator, Dict, Optional

from features.common.models.record_types import RecordKey, RecordState

logger = logging.getLogger(__name__)

@dataclass
class KeyOwner:
    """Context for one cache key: its freshness window and lock.

    Every read, refresh and write for the key runs while holding `lock`, so
    requests for the same key are processed one at a time. `holders` counts
    the tasks holding or waiting for the lock.
    """
    key: RecordKey
    ttl: timedelta
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    state: RecordState = RecordState.STALE_OR_MISSING
    holders: int = 0

class KeyOwnerRegistry:
    """Hands out one KeyOwner per key while the key is in use.

    An owner exists only while some task holds or waits for its lock; the
    last task to leave removes it, so the registry stays as large as the
    number of keys currently being worked on.
    """

    def __init__(self, ttl: timedelta, name: str = "records"):
        self.ttl = ttl
        self.name = name
        self._owners: Dict[RecordKey, KeyOwner] = {}

    def peek(self, key: RecordKey) -> Optional[KeyOwner]:
        """Owner for key if one is in use, without creating it."""
        return self._owners.get(key)

    @asynccontextmanager
    async def hold(self, key: RecordKey) -> AsyncIterator[KeyOwner]:
        """Acquire the key's lock, creating its owner on first use."""
        owner = self._owners.get(key)
        if owner is None:
            owner = KeyOwner(key=key, ttl=self.ttl)
            self._owners[key] = owner
            logger.debug(f"Created owner for {self.name} key {key}")

        owner.holders += 1
        try:
            async with owner.lock:
                yield owner
        finally:
            owner.holders -= 1
            if owner.holders == 0 and self._owners.get(key) is owner:
                del self._owners[key]

    def __len__(self) -> int:
        return len(self._owners)
