from pydantic import BaseModel, ConfigDict, Field

class Coordinate(BaseModel):
    """Geographic point in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude")

class Station(BaseModel):
    """Fixed-location upstream data source."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Station identifier")
    name: str = Field(..., description="Station name")
    location: Coordinate = Field(..., description="Station location")

class ResolvedStation(Station):
    """Station chosen for a target coordinate, with its distance to it."""
    distance: float = Field(..., ge=0, description="Distance to the target in kilometers")
