import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from incident_ai.core.config import ModelConfig, settings
from incident_ai.main import app
from incident_ai.routes.analysis import get_analysis_service, get_settings
from incident_ai.services.analysis_service import AnalysisService


def model_response(iocs=None, threat_score=0, **summary):
    return {
        "iocs": iocs if iocs is not None else [],
        "threats": [{"name": "Credential Stuffing", "confidence": 0.6, "description": "Repeated logins"}],
        "anomalies": [
            {
                "description": "Login burst",
                "severity": "High",
                "timestamp": "2024-01-15 14:25:22",
                "affected_systems": ["AUTH-01"],
            }
        ],
        "summary": dict(
            {
                "total_events": 12,
                "high_risk_events": 3,
                "threat_score": threat_score,
                "recommended_actions": ["Reset passwords"],
            },
            **summary
        ),
    }


class FakeModelClient:
    """
    In-memory ModelClient: returns a fixed completion or raises a fixed error.
    """

    def __init__(self, output=None, error=None, delay=0.0, ready=True):
        self.model = "fake-model"
        self.output = output
        self.error = error
        self.delay = delay
        self.ready = ready
        self.prompts = []

    async def analyze(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output)

    async def check_ready(self) -> bool:
        return self.ready


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def model_config():
    return ModelConfig(api_key="test-key", base_url="https://nim.test", model="test-model", timeout=1.0)


@pytest.fixture
def make_service(model_config):
    def _make(client=None, **kwargs):
        return AnalysisService(model_config, client=client, **kwargs)
    return _make


@pytest.fixture
def api():
    """
    TestClient factory; pass the AnalysisService the routes should use.
    """
    def _make(service, **setting_overrides):
        app.dependency_overrides[get_analysis_service] = lambda: service
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(update=setting_overrides)
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
