from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from incident_ai.core.config import settings
from incident_ai.routes.analysis import get_analysis_service
from incident_ai.services.analysis_service import AnalysisService

router = APIRouter()
_STARTED_AT = datetime.now(timezone.utc)


@router.get("/health")
async def get_health():
    """
    Standard health check endpoint.
    """
    return {"status": "ok", "service": settings.APP_NAME}


@router.get("/api/v1/health")
async def get_health_v1(service: AnalysisService = Depends(get_analysis_service)):
    """
    Health check with model status and uptime.
    """
    now = datetime.now(timezone.utc)
    uptime_seconds = int((now - _STARTED_AT).total_seconds())
    model_ready = await service.check_model_ready()
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "server_time": now.isoformat(),
        "uptime_seconds": uptime_seconds,
        "model": {
            "configured": service.config.has_credential,
            "ready": bool(model_ready),
            "demo_mode": service.demo_mode,
            "name": service.model,
        },
    }
