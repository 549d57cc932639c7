from fastapi import APIRouter, HTTPException, Depends, Query, Request
from features.common.exceptions.engine_exceptions import EngineError, PersistFailed
from features.common.models.geo_types import Coordinate
from features.common.models.record_types import RefreshResponse
from features.tides.models.tide_types import (
    TideExtremes,
    TideRecord,
    TideRefreshRequest
)
from features.tides.services.tide_service import TideService
import logging

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/tides",
    tags=["Tides"],
    responses={
        404: {"description": "No tide data available"},
        503: {"description": "Tide data could not be stored or fetched"}
    }
)

def get_service(request: Request) -> TideService:
    """Dependency to get the TideService instance."""
    return request.app.state.tide_service

@router.get(
    "/latest",
    response_model=TideRecord,
    summary="Get the most recent tide record",
    description="Returns the most recently stored tide record across all stations"
)
async def get_latest_tide(
    service: TideService = Depends(get_service)
) -> TideRecord:
    """Get the latest stored tide record."""
    tide = await service.get_latest_tide()
    if not tide:
        raise HTTPException(status_code=404, detail="No tide data available")
    return tide

@router.get(
    "/location",
    response_model=TideRecord,
    summary="Get tide status near a location",
    description="Returns the tide status at the nearest NOAA station within range of the coordinates"
)
async def get_tide_at_location(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    service: TideService = Depends(get_service)
) -> TideRecord:
    """Get tide status for the station nearest to a location."""
    tide = await service.get_tide_at_location(Coordinate(latitude=lat, longitude=lon))
    if not tide:
        raise HTTPException(status_code=404, detail=f"No tide data near {lat},{lon}")
    return tide

@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh tide data for a location",
    description="Finds the nearest station to the coordinates and stores its current tide status"
)
async def update_tide_data(
    body: TideRefreshRequest,
    service: TideService = Depends(get_service)
) -> RefreshResponse:
    """Refresh tide data for the nearest station."""
    try:
        return RefreshResponse(success=await service.update_tide_data(body.location))
    except PersistFailed as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.get(
    "/stations/{station_id}",
    response_model=TideRecord,
    summary="Get tide status for a station",
    description="Returns the cached tide status for a station, refreshing it when stale"
)
async def get_station_tide(
    station_id: str,
    service: TideService = Depends(get_service)
) -> TideRecord:
    """Get tide status for a specific station."""
    tide = await service.get_tide(station_id)
    if not tide:
        raise HTTPException(status_code=404, detail=f"No tide data for station {station_id}")
    return tide

@router.post(
    "/stations/{station_id}/refresh",
    response_model=RefreshResponse,
    summary="Refresh tide data for a station"
)
async def refresh_station(
    station_id: str,
    service: TideService = Depends(get_service)
) -> RefreshResponse:
    """Refresh tide data for a specific station."""
    try:
        return RefreshResponse(success=await service.refresh_station(station_id))
    except PersistFailed as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.get(
    "/stations/{station_id}/extremes",
    response_model=TideExtremes,
    summary="Get high and low tides for a station",
    description="Returns today's and tomorrow's high and low tide predictions from NOAA"
)
async def get_tide_extremes(
    station_id: str,
    service: TideService = Depends(get_service)
) -> TideExtremes:
    """Get high/low tide predictions for a specific station."""
    try:
        return await service.get_tide_extremes(station_id)
    except EngineError as e:
        logger.error(f"Error getting tide extremes for station {station_id}: {str(e)}")
        raise HTTPException(status_code=503, detail=str(e))
