from datetime import datetime, timezone

from fastapi import APIRouter

from app.core.logging import configure_logging
from app.models import HealthStatus

router = APIRouter(prefix="/api", tags=["Health"])

logger = configure_logging()


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    logger.debug("Health check invoked")
    return HealthStatus(status="ok", timestamp=datetime.now(timezone.utc))
