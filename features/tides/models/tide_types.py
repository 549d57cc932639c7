from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from features.common.models.geo_types import Coordinate

class Phase(str, Enum):
    """Current tide trend."""
    RISING = "rising"
    FALLING = "falling"
    HIGH = "high"
    LOW = "low"

class SampleKind(str, Enum):
    """High/low marker on extreme predictions."""
    HIGH = "H"
    LOW = "L"

class Sample(BaseModel):
    """Single timestamped measurement"""
    timestamp: datetime = Field(..., description="Time of the measurement (UTC)")
    value: float = Field(..., description="Water level in meters above MLLW")
    kind: Optional[SampleKind] = Field(None, description="High/low marker, if any")

class TideRecord(BaseModel):
    """Latest cached tide state for a station"""
    station_id: str = Field(..., description="Station identifier")
    height: float = Field(..., description="Water level in meters above MLLW")
    status: Phase = Field(..., description="Current tide phase")
    timestamp: datetime = Field(..., description="When the record was stored")

class TideExtreme(BaseModel):
    """High or low tide prediction"""
    time: datetime = Field(..., description="Time of the extreme")
    height: float = Field(..., description="Water level in meters above MLLW")

class TideExtremes(BaseModel):
    """High and low tides for a station"""
    station_id: str = Field(..., description="Station identifier")
    high_tides: List[TideExtreme] = Field(default_factory=list)
    low_tides: List[TideExtreme] = Field(default_factory=list)

class TideRefreshRequest(BaseModel):
    """Coordinates to refresh tide data for"""
    location: Coordinate
