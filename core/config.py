from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional

class Settings(BaseSettings):
    """Application settings."""

    # NOAA CO-OPS settings
    coops_metadata_url: str = "https://api.tidesandcurrents.noaa.gov/mdapi/prod/webapi"
    coops_base_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
    coops_params: Dict = {
        "product": "predictions",
        "datum": "MLLW",
        "units": "metric",
        "time_zone": "gmt",  # Timestamps are parsed as UTC
        "application": "web_services",
        "format": "json"
    }

    # Open-Meteo settings
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_params: Dict = {
        "current": "wind_speed_10m,precipitation",
        "wind_speed_unit": "kn"
    }

    # Upstream request timeout in seconds
    request_timeout: float = 30

    # Record storage
    db_path: str = "data/records.duckdb"

    # Stations further away than this are not used for tide lookups
    max_station_distance_km: float = 100

    # Decimal places used to quantize weather coordinates before keying.
    # None keeps the exact string form of the coordinate.
    coordinate_key_precision: Optional[int] = None

    # Logging
    log_level: str = "INFO"
    log_utc_offset_hours: int = -5
    log_timezone_label: str = "EST"

    def get_cache_ttl(self) -> Dict[str, int]:
        """Get freshness windows in seconds. Older records are refetched on read."""
        return {
            "tide_records": 3600,     # 1 hour (hourly predictions)
            "weather_records": 900,   # 15 minutes (current conditions)
        }

    model_config = SettingsConfigDict(
        env_prefix="tideweather_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
