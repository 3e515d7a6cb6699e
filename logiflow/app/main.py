"""
FastAPI Application Entry Point.

This is the main application file for the LogiFlow booking backend.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from logiflow.app.core.config import Settings, settings as default_settings
from logiflow.app.api.v1.router import router as api_v1_router
from logiflow.app.db.session import Database
from logiflow.app.core.observability import ObservabilityMiddleware, configure_logging
from logiflow.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from logiflow.app.models.user import User
from logiflow.app.models.driver import Driver
from logiflow.app.models.location import Location
from logiflow.app.models.booking import Booking
from logiflow.app.models.booking_item import BookingItem
from logiflow.app.models.tracking_update import TrackingUpdate


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    The persistence gateway is created in the lifespan and stored on
    ``app.state.database``; tests may set it directly instead.
    """
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(app_settings.log_level)
        database = Database(app_settings)
        await database.connect()
        app.state.database = database
        yield
        await database.dispose()

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.api_version,
        debug=app_settings.debug,
        description="Booking lifecycle backend for logistics operations",
        lifespan=lifespan,
    )

    app.add_middleware(ObservabilityMiddleware)

    # Register global exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "app_name": app_settings.app_name,
            "version": app_settings.api_version,
        }

    app.include_router(api_v1_router, prefix=f"/{app_settings.api_version}")
    return app


app = create_app()
