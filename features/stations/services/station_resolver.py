import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from features.common.exceptions.engine_exceptions import EmptyCatalog
from features.common.models.geo_types import Coordinate, ResolvedStation, Station
from utils.geo import distance

logger = logging.getLogger(__name__)

CatalogEntry = Union[Station, Mapping[str, Any]]

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)

def parse_station(entry: CatalogEntry) -> Optional[Station]:
    """Build a Station from a catalog entry, or None if the entry is malformed.

    Raw entries use the CO-OPS metadata shape: ``{"id", "name", "lat", "lng"}``.
    """
    if isinstance(entry, Station):
        return entry
    if not isinstance(entry, Mapping):
        return None

    station_id = entry.get("id")
    name = entry.get("name")
    lat = entry.get("lat")
    lng = entry.get("lng")
    if not (isinstance(station_id, str) and isinstance(name, str) and _is_number(lat) and _is_number(lng)):
        return None

    try:
        return Station(
            id=station_id,
            name=name,
            location=Coordinate(latitude=lat, longitude=lng)
        )
    except ValidationError:
        return None

def filter_catalog(catalog: Iterable[CatalogEntry]) -> List[Station]:
    """Drop malformed catalog entries, keeping catalog order."""
    stations = []
    for entry in catalog:
        station = parse_station(entry)
        if station is None:
            logger.warning(f"Skipping invalid station entry: {entry!r}")
            continue
        stations.append(station)
    return stations

def resolve_nearest(catalog: Iterable[CatalogEntry], target: Coordinate) -> ResolvedStation:
    """Find the station closest to target.

    Ties go to the earliest station in catalog order.

    Raises:
        EmptyCatalog: no valid station is left after filtering
    """
    stations = filter_catalog(catalog)
    if not stations:
        raise EmptyCatalog("No valid stations found in catalog")

    nearest: Optional[Station] = None
    nearest_distance = float("inf")
    for station in stations:
        d = distance(target, station.location)
        if nearest is None or d < nearest_distance:
            nearest = station
            nearest_distance = d

    logger.debug(f"Nearest station to {target.latitude},{target.longitude} is {nearest.id} ({nearest_distance:.1f} km)")
    return ResolvedStation(
        id=nearest.id,
        name=nearest.name,
        location=nearest.location,
        distance=nearest_distance
    )
