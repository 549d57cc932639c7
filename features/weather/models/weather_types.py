from datetime import datetime
from pydantic import BaseModel, Field

from features.common.models.geo_types import Coordinate

class WeatherConditions(BaseModel):
    """Current conditions at a point"""
    wind_speed: float = Field(..., description="10 m wind speed in knots")
    precipitation: float = Field(..., description="Precipitation in millimeters")

class WeatherRecord(BaseModel):
    """Cached conditions for a location"""
    id: str = Field(..., description="Location key, 'lat|lon'")
    wind_speed: float = Field(..., description="10 m wind speed in knots")
    precipitation: float = Field(..., description="Precipitation in millimeters")
    timestamp: datetime = Field(..., description="When the record was stored")
    location: Coordinate

class CreateWeatherRecordRequest(BaseModel):
    """Manually supplied conditions for a location"""
    location: Coordinate
    wind_speed: float
    precipitation: float
