from typing import List
from fastapi import APIRouter, HTTPException, Depends, Query, Request
from features.common.exceptions.engine_exceptions import PersistFailed
from features.common.models.geo_types import Coordinate
from features.common.models.record_types import RefreshResponse
from features.weather.models.weather_types import CreateWeatherRecordRequest, WeatherRecord
from features.weather.services.weather_service import WeatherService
import logging

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/weather",
    tags=["Weather"],
    responses={
        404: {"description": "No weather data available"}
    }
)

def get_service(request: Request) -> WeatherService:
    """Dependency to get the WeatherService instance."""
    return request.app.state.weather_service

@router.get(
    "/location",
    response_model=WeatherRecord,
    summary="Get current weather at a location",
    description="Returns cached wind and precipitation for the coordinates, refreshing them when stale"
)
async def get_weather_at_location(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    service: WeatherService = Depends(get_service)
) -> WeatherRecord:
    """Get current weather for a location."""
    weather = await service.get_weather(Coordinate(latitude=lat, longitude=lon))
    if not weather:
        raise HTTPException(status_code=404, detail=f"No weather data for {lat},{lon}")
    return weather

@router.get(
    "/all",
    response_model=List[WeatherRecord],
    summary="Get weather for all known locations"
)
async def get_all_weather(
    service: WeatherService = Depends(get_service)
) -> List[WeatherRecord]:
    """Get the latest stored weather for every location."""
    return await service.get_all_weather()

@router.post(
    "/locations",
    response_model=RefreshResponse,
    summary="Start tracking a location",
    description="Fetches and stores current conditions for the coordinates"
)
async def add_location(
    location: Coordinate,
    service: WeatherService = Depends(get_service)
) -> RefreshResponse:
    """Fetch and store weather for a new location."""
    try:
        return RefreshResponse(success=await service.add_location(location))
    except PersistFailed as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh the first stored location"
)
async def update_weather_data(
    service: WeatherService = Depends(get_service)
) -> RefreshResponse:
    """Refresh weather for the first stored location."""
    try:
        return RefreshResponse(success=await service.update_weather_data())
    except PersistFailed as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.post(
    "/records",
    response_model=WeatherRecord,
    summary="Store a weather record",
    description="Stores caller-supplied wind and precipitation for the coordinates"
)
async def create_weather_record(
    body: CreateWeatherRecordRequest,
    service: WeatherService = Depends(get_service)
) -> WeatherRecord:
    """Store a manually supplied weather record."""
    try:
        return await service.create_weather_record(body.location, body.wind_speed, body.precipitation)
    except PersistFailed as e:
        logger.error(f"Error creating weather record: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create weather record")
