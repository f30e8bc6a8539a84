# Service-level routes
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from clinic_booking.api.dependencies import get_settings
from clinic_booking.config import Settings

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    # Health check endpoint; does not call the provider
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "store": settings.store_type,
    }
