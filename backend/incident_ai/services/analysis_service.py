import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from incident_ai.core.config import ModelConfig
from incident_ai.core.errors import ModelTimeout, ModelUnavailable
from incident_ai.schemas.analysis import AnalysisRequest, AnalysisResult
from incident_ai.services.model_client import ModelClient, NIMClient
from incident_ai.services.normalizer import fallback_result, normalize_result
from incident_ai.services.request_builder import build_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    result: AnalysisResult
    source: Literal["model", "fallback", "demo"]
    error: Optional[ModelUnavailable] = None

    @property
    def degraded(self) -> bool:
        return self.source != "model"


class AnalysisService:
    """
    Runs one log analysis: prompt -> model -> normalized result.

    Model failures never escape analyze(); they come back as a fallback
    outcome carrying the error so the HTTP layer can decide how to report it.
    """

    def __init__(
        self,
        config: ModelConfig,
        client: Optional[ModelClient] = None,
        demo_mode: bool = False,
        demo_latency: float = 0.0,
    ):
        self.config = config
        self.client = client or NIMClient(config)
        self.demo_mode = demo_mode
        self.demo_latency = demo_latency

    @property
    def model(self) -> str:
        return self.config.model

    async def _fallback(self, source: str, error: Optional[ModelUnavailable] = None) -> AnalysisOutcome:
        if self.demo_latency > 0:
            await asyncio.sleep(self.demo_latency)
        return AnalysisOutcome(result=fallback_result(), source=source, error=error)

    async def analyze(self, request: AnalysisRequest) -> AnalysisOutcome:
        if self.demo_mode:
            logger.info("demo mode enabled, returning canned analysis")
            return await self._fallback("demo")

        prompt = build_prompt(request)
        try:
            raw_output = await asyncio.wait_for(self.client.analyze(prompt), timeout=self.config.timeout)
            result = normalize_result(raw_output)
        except asyncio.TimeoutError:
            error = ModelTimeout(f"Model did not answer within {self.config.timeout}s")
            logger.warning("model call timed out, using fallback analysis", extra={"reason": error.reason})
            return await self._fallback("fallback", error)
        except ModelUnavailable as exc:
            logger.warning(
                "model analysis failed, using fallback analysis",
                extra={"reason": exc.reason, "details": exc.details},
            )
            return await self._fallback("fallback", exc)

        logger.info(
            "log analysis completed",
            extra={
                "analysis_type": request.analysisType.value,
                "log_lines": len(request.logs),
                "ioc_count": len(result.iocs),
                "threat_score": result.summary.threat_score,
            },
        )
        return AnalysisOutcome(result=result, source="model")

    async def check_model_ready(self) -> bool:
        if self.demo_mode:
            return False
        try:
            return await self.client.check_ready()
        except Exception:
            logger.exception("model readiness check raised")
            return False
