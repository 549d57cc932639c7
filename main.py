from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

from core.config import Settings, settings
from core.logging_config import setup_logging

# Feature routes
from features.tides.routes.tide_routes import router as tide_router
from features.weather.routes.weather_routes import router as weather_router

# Services and clients
from features.common.services.record_store import RecordDatabase, TideRecordStore, WeatherRecordStore
from features.tides.services.coops_client import CoopsClient
from features.tides.services.tide_service import TideService
from features.weather.services.open_meteo_client import OpenMeteoClient
from features.weather.services.weather_service import WeatherService

logger = logging.getLogger(__name__)

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the API with its own record database, clients and services."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        database = None
        coops_client = None
        open_meteo_client = None
        try:
            logger.info("🚀 Starting Tide & Weather API...")

            database = RecordDatabase(app_settings.db_path)
            ttl = app_settings.get_cache_ttl()

            coops_client = CoopsClient(timeout=app_settings.request_timeout)
            open_meteo_client = OpenMeteoClient(timeout=app_settings.request_timeout)

            app.state.tide_service = TideService(
                client=coops_client,
                store=TideRecordStore(database),
                ttl=timedelta(seconds=ttl["tide_records"]),
                max_station_distance_km=app_settings.max_station_distance_km
            )
            app.state.weather_service = WeatherService(
                client=open_meteo_client,
                store=WeatherRecordStore(database),
                ttl=timedelta(seconds=ttl["weather_records"]),
                key_precision=app_settings.coordinate_key_precision
            )

            logger.info("✨ API startup complete - ready to serve requests")
            yield

        except Exception as e:
            logger.error(f"❌ Startup error: {str(e)}")
            raise
        finally:
            logger.info("🔄 Shutting down API...")
            if coops_client:
                await coops_client.close()
            if open_meteo_client:
                await open_meteo_client.close()
            if database:
                database.close()
            logger.info("👋 API shutdown complete")

    app = FastAPI(
        title="Tide & Weather API",
        description="Nearest-station tide status and current weather, cached per location",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(tide_router)
    app.include_router(weather_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "time": datetime.now().isoformat()
        }

    return app

setup_logging()
app = create_app()

def run() -> None:
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 5010))

    # Key owners live in process memory: one worker, and no reloader restarts
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
        workers=1
    )

if __name__ == "__main__":
    run()
