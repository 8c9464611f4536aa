from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from models.contracts import HealthResponse

health_router = APIRouter()


@health_router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_settings)):
    """Liveness check for load balancers and uptime monitors. No dependencies are probed."""
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
    )
