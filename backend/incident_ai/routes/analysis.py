import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from incident_ai.core.config import Settings, settings
from incident_ai.core.errors import RequestValidationError
from incident_ai.schemas.analysis import AnalysisResult, ErrorResponse
from incident_ai.services.analysis_service import AnalysisService
from incident_ai.services.request_builder import parse_payload, validate_request

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings() -> Settings:
    return settings


@lru_cache
def get_analysis_service() -> AnalysisService:
    return AnalysisService(
        settings.model_config_for_analysis(),
        demo_mode=settings.ANALYSIS_DEMO_MODE,
        demo_latency=settings.ANALYSIS_DEMO_LATENCY_SECONDS,
    )


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@router.post(
    "/nvidia-analysis",
    response_model=AnalysisResult,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def analyze_logs(
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
    app_settings: Settings = Depends(get_settings),
):
    """
    Analyzes uploaded security logs for IOCs, threats and anomalies.

    Model unavailability is reported as a normal 200 carrying the fallback
    analysis (X-Analysis-Source: fallback) unless ANALYSIS_FAIL_OPEN is off.
    """
    try:
        payload = parse_payload(await request.body())
        analysis_request = validate_request(payload)
    except RequestValidationError as exc:
        logger.info("rejected analysis request", extra={"reason": exc.reason})
        return _error(400, exc.message)

    try:
        outcome = await service.analyze(analysis_request)
    except Exception as e:
        logger.exception("log analysis failed")
        return _error(500, "Failed to analyze logs", str(e))

    if outcome.error is not None and not app_settings.ANALYSIS_FAIL_OPEN:
        return _error(503, "Analysis service unavailable", outcome.error.message)

    return JSONResponse(
        content=outcome.result.to_response(),
        headers={"X-Analysis-Source": outcome.source},
    )
