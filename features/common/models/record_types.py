from datetime import datetime
from enum import Enum
from typing import Any, Dict, Tuple
from pydantic import BaseModel, ConfigDict

RecordKey = Tuple[str, ...]

class RecordState(str, Enum):
    """Freshness of the latest record for a key."""
    FRESH = "fresh"
    STALE_OR_MISSING = "stale_or_missing"
    REFRESHING = "refreshing"

class CacheRecord(BaseModel):
    """One stored record: key columns, payload columns and write time (UTC)."""
    model_config = ConfigDict(frozen=True)

    key: RecordKey
    payload: Dict[str, Any]
    timestamp: datetime

    @property
    def id(self) -> str:
        return "|".join(self.key)

class RefreshResponse(BaseModel):
    """Outcome of an explicit refresh"""
    success: bool
