"""
Health check endpoint.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from deps import get_rental_store
from services.rental_store import RentalStoreClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(store: RentalStoreClient = Depends(get_rental_store)):
    """Health check — verifies the rental backend answers."""
    if await store.ping():
        return {
            "status": "healthy",
            "rental_backend_connected": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    logger.error("Health check failed: rental backend unreachable")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "unhealthy",
            "rental_backend_connected": False,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
