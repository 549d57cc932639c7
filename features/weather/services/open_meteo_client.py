import asyncio
import logging
import aiohttp
from typing import Any, Optional

from core.config import settings
from features.common.exceptions.engine_exceptions import MalformedUpstreamPayload, UpstreamUnavailable
from features.common.models.geo_types import Coordinate
from features.weather.models.weather_types import WeatherConditions

logger = logging.getLogger(__name__)

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)

def parse_current_conditions(data: Any) -> WeatherConditions:
    """Extract wind speed and precipitation from an Open-Meteo forecast response."""
    current = data.get("current") if isinstance(data, dict) else None
    if not isinstance(current, dict):
        raise MalformedUpstreamPayload("Weather response has no current conditions")

    wind_speed = current.get("wind_speed_10m")
    precipitation = current.get("precipitation")
    if not (_is_number(wind_speed) and _is_number(precipitation)):
        raise MalformedUpstreamPayload(f"Invalid current conditions: {current!r}")

    return WeatherConditions(wind_speed=wind_speed, precipitation=precipitation)

class OpenMeteoClient:
    """Client for Open-Meteo current conditions."""

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

    async def fetch_current_conditions(self, coordinate: Coordinate) -> WeatherConditions:
        """Get current wind speed (knots) and precipitation for a point."""
        params = {
            **settings.open_meteo_params,
            "latitude": str(coordinate.latitude),
            "longitude": str(coordinate.longitude)
        }

        try:
            session = await self._init_session()
            async with session.get(settings.open_meteo_url, params=params) as response:
                if response.status != 200:
                    raise UpstreamUnavailable(f"Weather API failed: {response.status}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.error("Weather API request timed out")
            raise UpstreamUnavailable("Weather API request timed out") from e
        except aiohttp.ClientError as e:
            logger.error(f"Weather fetch error: {str(e)}")
            raise UpstreamUnavailable(f"Weather fetch error: {str(e)}") from e
        except ValueError as e:
            raise MalformedUpstreamPayload(f"Weather API returned invalid JSON: {str(e)}") from e

        return parse_current_conditions(data)
