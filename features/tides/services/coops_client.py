import asyncio
import logging
import aiohttp
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from core.config import settings
from features.common.exceptions.engine_exceptions import MalformedUpstreamPayload, UpstreamUnavailable
from features.tides.models.tide_types import Sample, SampleKind

logger = logging.getLogger(__name__)

NO_PREDICTIONS_MESSAGE = "No Predictions data was found"

def parse_prediction_time(value: str) -> datetime:
    """Parse a CO-OPS GMT timestamp such as '2024-06-01 13:00'."""
    return datetime.strptime(value, "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)

def parse_predictions(data: Any) -> List[Sample]:
    """Turn a datagetter predictions payload into samples, keeping upstream order."""
    if not isinstance(data, dict):
        raise MalformedUpstreamPayload("Tide predictions response is not an object")

    if "error" in data:
        error = data["error"]
        message = error.get("message", "") if isinstance(error, dict) else str(error)
        message = message or "Unknown error from NOAA API"
        if NO_PREDICTIONS_MESSAGE in message:
            return []
        raise UpstreamUnavailable(message)

    predictions = data.get("predictions")
    if not isinstance(predictions, list):
        raise MalformedUpstreamPayload("Invalid tide data received from NOAA API")

    samples = []
    for prediction in predictions:
        try:
            kind = prediction.get("type")
            samples.append(Sample(
                timestamp=parse_prediction_time(prediction["t"]),
                value=float(prediction["v"]),
                kind=SampleKind(kind) if kind else None
            ))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedUpstreamPayload(f"Invalid tide prediction {prediction!r}: {e}") from e
    return samples

class CoopsClient:
    """Client for the NOAA CO-OPS station metadata and tide prediction APIs."""

    def __init__(self, timeout: Optional[float] = None):
        self._session: Optional[aiohttp.ClientSession] = None
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.request_timeout)

    async def _init_session(self) -> aiohttp.ClientSession:
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params: Dict[str, str]) -> Any:
        try:
            session = await self._init_session()
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(f"NOAA API error response ({response.status}): {body[:200]}")
                    raise UpstreamUnavailable(f"NOAA API returned status: {response.status}")
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out fetching {url}")
            raise UpstreamUnavailable("NOAA API request timed out") from e
        except aiohttp.ClientError as e:
            logger.error(f"Error fetching {url}: {str(e)}")
            raise UpstreamUnavailable(f"Error fetching NOAA data: {str(e)}") from e
        except ValueError as e:
            raise MalformedUpstreamPayload(f"NOAA API returned invalid JSON: {str(e)}") from e

    async def fetch_station_catalog(self) -> List[Dict[str, Any]]:
        """Get the raw list of tide prediction stations.

        Entries are returned as-is; malformed ones are filtered by the resolver.
        """
        data = await self._get_json(
            f"{settings.coops_metadata_url}/stations.json",
            {"type": "tidepredictions", "units": "metric"}
        )
        if not isinstance(data, dict) or not isinstance(data.get("stations"), list):
            logger.error("Invalid station data structure from NOAA API")
            raise MalformedUpstreamPayload("Invalid station data received from NOAA API")
        return data["stations"]

    def _prediction_params(self, station_id: str, interval: str, start_date: Optional[datetime]) -> Dict[str, str]:
        start_date = start_date or datetime.now(timezone.utc)
        end_date = start_date + timedelta(days=1)
        return {
            **settings.coops_params,
            "station": station_id,
            "begin_date": start_date.strftime("%Y%m%d"),
            "end_date": end_date.strftime("%Y%m%d"),
            "interval": interval
        }

    async def fetch_series(self, station_id: str, start_date: Optional[datetime] = None) -> List[Sample]:
        """Hourly water level predictions from start_date through the next day."""
        data = await self._get_json(
            settings.coops_base_url,
            self._prediction_params(station_id, "h", start_date)
        )
        return parse_predictions(data)

    async def fetch_extremes(self, station_id: str, start_date: Optional[datetime] = None) -> List[Sample]:
        """High/low tide predictions from start_date through the next day."""
        data = await self._get_json(
            settings.coops_base_url,
            self._prediction_params(station_id, "hilo", start_date)
        )
        return parse_predictions(data)
