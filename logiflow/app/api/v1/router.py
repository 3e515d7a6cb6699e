"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from logiflow.app.api.v1.endpoints import bookings

router = APIRouter()

router.include_router(bookings.router)
