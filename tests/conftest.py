"""Shared pytest fixtures for tide & weather tests.

All tests run offline: upstream providers are replaced by in-memory fakes or
local aiohttp servers, and records go to a temporary DuckDB file.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from features.common.models.geo_types import Coordinate
from features.common.services.record_store import RecordDatabase, TideRecordStore, WeatherRecordStore
from features.tides.models.tide_types import Sample
from features.weather.models.weather_types import WeatherConditions

START = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

CATALOG = [
    {"id": "8518750", "name": "The Battery", "lat": 40.7006, "lng": -74.0142},
    {"id": "8516945", "name": "Kings Point", "lat": 40.8103, "lng": -73.7649},
    {"id": "9414290", "name": "San Francisco", "lat": 37.8063, "lng": -122.4659},
]

NEW_YORK = Coordinate(latitude=40.7128, longitude=-74.0060)
MID_ATLANTIC = Coordinate(latitude=0.0, longitude=-30.0)


class FakeClock:
    """Settable clock for freshness and retention checks."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCoopsClient:
    """In-memory stand-in for the CO-OPS client."""

    def __init__(
        self,
        catalog: Optional[list] = None,
        series: Optional[Dict[str, List[Sample]]] = None,
        extremes: Optional[Dict[str, List[Sample]]] = None,
    ):
        self.catalog = catalog if catalog is not None else list(CATALOG)
        self.series = series or {}
        self.extremes = extremes or {}
        self.catalog_error: Optional[Exception] = None
        self.series_error: Optional[Exception] = None
        self.catalog_calls = 0
        self.series_calls: List[str] = []

    async def fetch_station_catalog(self):
        self.catalog_calls += 1
        if self.catalog_error:
            raise self.catalog_error
        return list(self.catalog)

    async def fetch_series(self, station_id, start_date=None):
        self.series_calls.append(station_id)
        if self.series_error:
            raise self.series_error
        return list(self.series.get(station_id, []))

    async def fetch_extremes(self, station_id, start_date=None):
        if self.series_error:
            raise self.series_error
        return list(self.extremes.get(station_id, []))

    async def close(self):
        pass


class FakeOpenMeteoClient:
    """In-memory stand-in for the Open-Meteo client."""

    def __init__(self, wind_speed: float = 12.5, precipitation: float = 0.4):
        self.wind_speed = wind_speed
        self.precipitation = precipitation
        self.error: Optional[Exception] = None
        self.calls: List[Coordinate] = []

    async def fetch_current_conditions(self, coordinate):
        self.calls.append(coordinate)
        if self.error:
            raise self.error
        return WeatherConditions(wind_speed=self.wind_speed, precipitation=self.precipitation)

    async def close(self):
        pass


def hourly_series(values: List[float], start: datetime = START.replace(hour=0)) -> List[Sample]:
    """Samples one hour apart starting at midnight of the test day."""
    return [
        Sample(timestamp=start + timedelta(hours=i), value=value)
        for i, value in enumerate(values)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(tmp_path):
    """Temporary record database."""
    db = RecordDatabase(tmp_path / "records.duckdb")
    yield db
    db.close()


@pytest.fixture
def tide_store(database) -> TideRecordStore:
    return TideRecordStore(database)


@pytest.fixture
def weather_store(database) -> WeatherRecordStore:
    return WeatherRecordStore(database)


@pytest.fixture
def rising_series() -> List[Sample]:
    """24 hourly samples climbing 0.2 m per hour from 0.0 m."""
    return hourly_series([round(0.2 * i, 1) for i in range(24)])


@pytest.fixture
def coops_client(rising_series) -> FakeCoopsClient:
    return FakeCoopsClient(series={"8518750": rising_series})


@pytest.fixture
def open_meteo_client() -> FakeOpenMeteoClient:
    return FakeOpenMeteoClient()


@pytest.fixture
def series_factory():
    return hourly_series


@pytest.fixture
def coops_factory():
    return FakeCoopsClient


@pytest.fixture
def new_york() -> Coordinate:
    return NEW_YORK


@pytest.fixture
def offshore() -> Coordinate:
    """Point with no station inside 100 km."""
    return MID_ATLANTIC


@pytest.fixture
def upstream_server():
    """Build a local HTTP server that answers every GET with handler.

    Use as ``async with upstream_server(handler) as server``.
    """
    def serve(handler) -> TestServer:
        app = web.Application()
        app.router.add_get("/{tail:.*}", handler)
        return TestServer(app)
    return serve
