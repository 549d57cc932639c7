import logging
from datetime import timedelta
from typing import Optional

from features.common.exceptions.engine_exceptions import EngineError, NoSeriesData, NoUsableStation, PersistFailed
from features.common.models.geo_types import Coordinate, ResolvedStation
from features.common.models.record_types import CacheRecord, RecordKey
from features.common.services.record_store import TideRecordStore
from features.common.services.refresh_orchestrator import Clock, Pipeline, RefreshOrchestrator, utc_now
from features.stations.services.station_resolver import resolve_nearest
from features.tides.models.tide_types import Phase, SampleKind, TideExtreme, TideExtremes, TideRecord
from features.tides.services.coops_client import CoopsClient
from features.tides.services.tide_classifier import classify

logger = logging.getLogger(__name__)

class TideService:
    """Tide status for NOAA CO-OPS stations, cached per station."""

    def __init__(
        self,
        client: CoopsClient,
        store: TideRecordStore,
        ttl: timedelta,
        max_station_distance_km: float = 100,
        clock: Clock = utc_now
    ) -> None:
        self.client = client
        self.store = store
        self.max_station_distance_km = max_station_distance_km
        self.clock = clock
        self.orchestrator = RefreshOrchestrator(store, ttl, clock=clock)

    @staticmethod
    def station_key(station_id: str) -> RecordKey:
        return (station_id,)

    @staticmethod
    def _to_tide(record: CacheRecord) -> TideRecord:
        return TideRecord(
            station_id=record.key[0],
            height=record.payload["height"],
            status=Phase(record.payload["status"]),
            timestamp=record.timestamp
        )

    async def resolve_station(self, coordinate: Coordinate) -> ResolvedStation:
        """Nearest station within the usable distance.

        Raises:
            UpstreamUnavailable, MalformedUpstreamPayload: catalog could not be fetched
            EmptyCatalog: catalog had no valid stations
            NoUsableStation: nearest station is too far away
        """
        catalog = await self.client.fetch_station_catalog()
        station = resolve_nearest(catalog, coordinate)
        if station.distance > self.max_station_distance_km:
            raise NoUsableStation(station.id, station.distance, self.max_station_distance_km)
        return station

    def _pipeline(self, station_id: str) -> Pipeline:
        async def refresh_station():
            series = await self.client.fetch_series(station_id)
            if not series:
                raise NoSeriesData(f"No tide predictions for station {station_id}")
            status = classify(series, self.clock())
            logger.info(f"🌊 Station {station_id} tide is {status.value}")
            return {"height": series[0].value, "status": status.value}
        return refresh_station

    async def get_tide(self, station_id: str) -> Optional[TideRecord]:
        """Latest tide record for a station, refreshed if stale."""
        record = await self.orchestrator.get_latest(
            self.station_key(station_id),
            self._pipeline(station_id)
        )
        return self._to_tide(record) if record else None

    async def get_latest_tide(self) -> Optional[TideRecord]:
        """Most recent tide record across all stations, without refreshing."""
        record = self.orchestrator.servable(self.store.latest_overall())
        return self._to_tide(record) if record else None

    async def get_tide_at_location(self, coordinate: Coordinate) -> Optional[TideRecord]:
        """Tide record for the nearest usable station to a coordinate."""
        try:
            station = await self.resolve_station(coordinate)
        except EngineError as e:
            logger.warning(f"⚠️ No tide station for {coordinate.latitude},{coordinate.longitude}: {e}")
            return None
        return await self.get_tide(station.id)

    async def refresh_station(self, station_id: str) -> bool:
        """Refresh a known station.

        Raises:
            PersistFailed: the new record could not be stored
        """
        try:
            await self.orchestrator.refresh(self.station_key(station_id), self._pipeline(station_id))
            return True
        except PersistFailed:
            raise
        except EngineError as e:
            logger.error(f"Error updating tide data for station {station_id}: {e}")
            return False

    async def update_tide_data(self, coordinate: Coordinate) -> bool:
        """Resolve the nearest station to a coordinate and refresh it.

        Raises:
            PersistFailed: the new record could not be stored
        """
        try:
            station = await self.resolve_station(coordinate)
        except EngineError as e:
            logger.error(f"Error updating tide data: {e}")
            return False
        return await self.refresh_station(station.id)

    async def get_tide_extremes(self, station_id: str) -> TideExtremes:
        """High and low tide predictions for a station (not cached)."""
        samples = await self.client.fetch_extremes(station_id)
        return TideExtremes(
            station_id=station_id,
            high_tides=[
                TideExtreme(time=s.timestamp, height=s.value)
                for s in samples if s.kind == SampleKind.HIGH
            ],
            low_tides=[
                TideExtreme(time=s.timestamp, height=s.value)
                for s in samples if s.kind == SampleKind.LOW
            ]
        )
