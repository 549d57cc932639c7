import logging
from datetime import timedelta
from typing import List, Optional

from features.common.exceptions.engine_exceptions import EngineError, PersistFailed
from features.common.models.geo_types import Coordinate
from features.common.models.record_types import CacheRecord, RecordKey
from features.common.services.record_store import WeatherRecordStore
from features.common.services.refresh_orchestrator import Clock, Pipeline, RefreshOrchestrator, utc_now
from features.weather.models.weather_types import WeatherRecord
from features.weather.services.open_meteo_client import OpenMeteoClient

logger = logging.getLogger(__name__)

def location_key(coordinate: Coordinate, precision: Optional[int] = None) -> RecordKey:
    """Cache key for a coordinate.

    Without a precision the key is the exact string form of each float, so
    40.7 and 40.70001 are different locations.
    """
    latitude, longitude = coordinate.latitude, coordinate.longitude
    if precision is not None:
        latitude, longitude = round(latitude, precision), round(longitude, precision)
    return (str(latitude), str(longitude))

def key_location(key: RecordKey) -> Coordinate:
    return Coordinate(latitude=float(key[0]), longitude=float(key[1]))

class WeatherService:
    """Current wind and precipitation per location, cached per location key."""

    def __init__(
        self,
        client: OpenMeteoClient,
        store: WeatherRecordStore,
        ttl: timedelta,
        key_precision: Optional[int] = None,
        clock: Clock = utc_now
    ) -> None:
        self.client = client
        self.store = store
        self.key_precision = key_precision
        self.orchestrator = RefreshOrchestrator(store, ttl, clock=clock)

    def key_for(self, coordinate: Coordinate) -> RecordKey:
        return location_key(coordinate, self.key_precision)

    @staticmethod
    def _to_weather(record: CacheRecord) -> WeatherRecord:
        return WeatherRecord(
            id=record.id,
            wind_speed=record.payload["wind_speed"],
            precipitation=record.payload["precipitation"],
            timestamp=record.timestamp,
            location=key_location(record.key)
        )

    def _pipeline(self, coordinate: Coordinate) -> Pipeline:
        async def refresh_location():
            conditions = await self.client.fetch_current_conditions(coordinate)
            return {"wind_speed": conditions.wind_speed, "precipitation": conditions.precipitation}
        return refresh_location

    async def get_weather(self, coordinate: Coordinate) -> Optional[WeatherRecord]:
        """Latest conditions for a location, refreshed if stale."""
        record = await self.orchestrator.get_latest(self.key_for(coordinate), self._pipeline(coordinate))
        return self._to_weather(record) if record else None

    async def get_all_weather(self) -> List[WeatherRecord]:
        """Latest stored conditions for every known location."""
        return [
            self._to_weather(record)
            for record in self.store.latest_per_key()
            if self.orchestrator.servable(record)
        ]

    async def _refresh(self, key: RecordKey, coordinate: Coordinate) -> bool:
        try:
            await self.orchestrator.refresh(key, self._pipeline(coordinate))
            return True
        except PersistFailed:
            raise
        except EngineError as e:
            logger.error(f"Error updating weather data for {'|'.join(key)}: {e}")
            return False

    async def add_location(self, coordinate: Coordinate) -> bool:
        """Fetch and store conditions for a location.

        Raises:
            PersistFailed: the new record could not be stored
        """
        return await self._refresh(self.key_for(coordinate), coordinate)

    async def update_weather_data(self) -> bool:
        """Refresh the first stored location in (latitude, longitude) order."""
        key = self.store.first_key()
        if key is None:
            return True
        return await self._refresh(key, key_location(key))

    async def create_weather_record(
        self,
        coordinate: Coordinate,
        wind_speed: float,
        precipitation: float
    ) -> WeatherRecord:
        """Store caller-supplied conditions for a location.

        Raises:
            PersistFailed: the record could not be stored
        """
        record = await self.orchestrator.write(
            self.key_for(coordinate),
            {"wind_speed": wind_speed, "precipitation": precipitation}
        )
        return self._to_weather(record)
