"""Tests for TideService with in-memory upstream fakes."""

from datetime import datetime, timedelta, timezone

import pytest

from features.common.exceptions.engine_exceptions import (
    NoUsableStation,
    PersistFailed,
    UpstreamUnavailable,
)
from features.tides.models.tide_types import Phase, Sample, SampleKind
from features.tides.services.tide_service import TideService

TTL = timedelta(hours=1)


@pytest.fixture
def service(coops_client, tide_store, clock) -> TideService:
    return TideService(coops_client, tide_store, TTL, clock=clock)


class TestResolveStation:
    """Tests for resolve_station()."""

    @pytest.mark.asyncio
    async def test_nearest_station(self, service, new_york):
        station = await service.resolve_station(new_york)
        assert station.id == "8518750"
        assert station.distance < 5

    @pytest.mark.asyncio
    async def test_too_far(self, service, offshore):
        with pytest.raises(NoUsableStation) as exc_info:
            await service.resolve_station(offshore)
        assert exc_info.value.max_distance == 100


class TestGetTide:
    """Tests for get_tide() and get_tide_at_location()."""

    @pytest.mark.asyncio
    async def test_first_read_fetches_and_stores(self, service, coops_client, clock):
        tide = await service.get_tide("8518750")

        assert tide.station_id == "8518750"
        # Height is the first sample of the day
        assert tide.height == 0.0
        assert tide.status == Phase.RISING
        assert tide.timestamp == clock()
        assert coops_client.series_calls == ["8518750"]

    @pytest.mark.asyncio
    async def test_fresh_read_skips_upstream(self, service, coops_client, clock):
        await service.get_tide("8518750")
        clock.advance(minutes=59)

        await service.get_tide("8518750")

        assert coops_client.series_calls == ["8518750"]

    @pytest.mark.asyncio
    async def test_stale_read_refetches(self, service, coops_client, clock):
        await service.get_tide("8518750")
        clock.advance(hours=1, minutes=1)

        tide = await service.get_tide("8518750")

        assert coops_client.series_calls == ["8518750", "8518750"]
        assert tide.timestamp == clock()

    @pytest.mark.asyncio
    async def test_upstream_failure_serves_previous(self, service, coops_client, clock):
        first = await service.get_tide("8518750")
        clock.advance(hours=3)
        coops_client.series_error = UpstreamUnavailable("NOAA API returned status: 500")

        tide = await service.get_tide("8518750")

        assert tide == first

    @pytest.mark.asyncio
    async def test_empty_series_is_absent(self, coops_factory, tide_store, clock):
        service = TideService(coops_factory(series={}), tide_store, TTL, clock=clock)

        assert await service.get_tide("8518750") is None
        assert tide_store.latest(("8518750",)) is None

    @pytest.mark.asyncio
    async def test_falling_tide(self, coops_factory, series_factory, tide_store, clock):
        values = [3.0 - 0.2 * i for i in range(24)]
        client = coops_factory(series={"8518750": series_factory(values)})
        service = TideService(client, tide_store, TTL, clock=clock)

        tide = await service.get_tide("8518750")

        assert tide.status == Phase.FALLING
        assert tide.height == 3.0

    @pytest.mark.asyncio
    async def test_at_location(self, service, new_york):
        tide = await service.get_tide_at_location(new_york)
        assert tide.station_id == "8518750"

    @pytest.mark.asyncio
    async def test_at_location_too_far(self, service, coops_client, offshore):
        assert await service.get_tide_at_location(offshore) is None
        assert coops_client.series_calls == []

    @pytest.mark.asyncio
    async def test_at_location_catalog_unavailable(self, service, coops_client, new_york):
        coops_client.catalog_error = UpstreamUnavailable("timeout")
        assert await service.get_tide_at_location(new_york) is None

    @pytest.mark.asyncio
    async def test_at_location_empty_catalog(self, coops_factory, tide_store, clock, new_york):
        service = TideService(coops_factory(catalog=[]), tide_store, TTL, clock=clock)
        assert await service.get_tide_at_location(new_york) is None


class TestGetLatestTide:
    """Tests for get_latest_tide()."""

    @pytest.mark.asyncio
    async def test_no_records(self, service):
        assert await service.get_latest_tide() is None

    @pytest.mark.asyncio
    async def test_most_recent_across_stations(self, service, tide_store, clock):
        tide_store.append(("8516945",), {"height": 1.0, "status": "low"}, clock() - timedelta(minutes=10))
        tide_store.append(("8518750",), {"height": 2.0, "status": "high"}, clock())

        tide = await service.get_latest_tide()

        assert tide.station_id == "8518750"
        assert tide.status == Phase.HIGH

    @pytest.mark.asyncio
    async def test_does_not_refresh(self, service, coops_client, tide_store, clock):
        tide_store.append(("8518750",), {"height": 2.0, "status": "high"}, clock() - timedelta(hours=5))

        tide = await service.get_latest_tide()

        assert tide.height == 2.0
        assert coops_client.series_calls == []

    @pytest.mark.asyncio
    async def test_expired_record_is_absent(self, service, tide_store, clock):
        tide_store.append(("8518750",), {"height": 2.0, "status": "high"}, clock() - timedelta(hours=25))
        assert await service.get_latest_tide() is None


class TestUpdateTideData:
    """Tests for update_tide_data() and refresh_station()."""

    @pytest.mark.asyncio
    async def test_update_stores_record(self, service, tide_store, new_york):
        assert await service.update_tide_data(new_york) is True
        assert tide_store.latest(("8518750",)).payload["status"] == "rising"

    @pytest.mark.asyncio
    async def test_update_ignores_freshness(self, service, coops_client, new_york):
        await service.update_tide_data(new_york)
        await service.update_tide_data(new_york)
        assert coops_client.series_calls == ["8518750", "8518750"]

    @pytest.mark.asyncio
    async def test_far_location_does_not_write(self, service, tide_store, offshore):
        assert await service.update_tide_data(offshore) is False
        assert tide_store.latest_overall() is None

    @pytest.mark.asyncio
    async def test_upstream_failure(self, service, coops_client, new_york):
        coops_client.series_error = UpstreamUnavailable("NOAA API returned status: 502")
        assert await service.update_tide_data(new_york) is False

    @pytest.mark.asyncio
    async def test_empty_series(self, coops_factory, tide_store, clock, new_york):
        service = TideService(coops_factory(series={}), tide_store, TTL, clock=clock)
        assert await service.update_tide_data(new_york) is False

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, service, database, new_york):
        database.conn.execute("DROP TABLE tide_records")
        with pytest.raises(PersistFailed):
            await service.update_tide_data(new_york)

    @pytest.mark.asyncio
    async def test_refresh_known_station(self, service):
        assert await service.refresh_station("8518750") is True


class TestGetTideExtremes:
    """Tests for get_tide_extremes()."""

    @pytest.mark.asyncio
    async def test_splits_highs_and_lows(self, coops_factory, tide_store, clock):
        day = datetime(2026, 10, 18, tzinfo=timezone.utc)
        extremes = [
            Sample(timestamp=day + timedelta(hours=3), value=1.6, kind=SampleKind.HIGH),
            Sample(timestamp=day + timedelta(hours=9), value=0.1, kind=SampleKind.LOW),
            Sample(timestamp=day + timedelta(hours=15), value=1.5, kind=SampleKind.HIGH),
        ]
        service = TideService(coops_factory(extremes={"8518750": extremes}), tide_store, TTL, clock=clock)

        result = await service.get_tide_extremes("8518750")

        assert result.station_id == "8518750"
        assert [e.height for e in result.high_tides] == [1.6, 1.5]
        assert [e.time for e in result.low_tides] == [day + timedelta(hours=9)]

    @pytest.mark.asyncio
    async def test_upstream_failure_raises(self, service, coops_client):
        coops_client.series_error = UpstreamUnavailable("down")
        with pytest.raises(UpstreamUnavailable):
            await service.get_tide_extremes("8518750")
