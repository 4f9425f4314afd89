import logging
from typing import Any, Optional, Protocol

import httpx

from incident_ai.core.config import ModelConfig
from incident_ai.core.errors import (
    AuthError,
    InvalidModelOutput,
    MissingCredential,
    ModelTimeout,
    NetworkError,
    RateLimitError,
)
from incident_ai.services.request_builder import build_completion_payload

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    model: str

    async def analyze(self, prompt: str) -> str:
        ...

    async def check_ready(self) -> bool:
        ...


class NIMClient:
    """
    Chat-completions client for NVIDIA NIM (OpenAI compatible API).
    Every failure is raised as a ModelUnavailable subclass.
    """

    def __init__(self, config: ModelConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.model = config.model
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def analyze(self, prompt: str) -> str:
        if not self.config.has_credential:
            raise MissingCredential("No API credential configured for the model service")

        payload = build_completion_payload(prompt, self.config)

        try:
            async with self._client() as client:
                response = await client.post("/v1/chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            raise ModelTimeout("Model request timed out", details=str(exc))
        except httpx.HTTPError as exc:
            raise NetworkError("Model request failed", details=str(exc))

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise InvalidModelOutput("Model response body is not JSON", details=str(exc))
        return self._first_completion_text(data)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        details = response.text[:500]
        if response.status_code in (401, 403):
            raise AuthError(f"NIM API error: {response.status_code} {response.reason_phrase}", details=details)
        if response.status_code == 429:
            raise RateLimitError("NIM API error: rate limited", details=details)
        raise NetworkError(f"NIM API error: {response.status_code} {response.reason_phrase}", details=details)

    def _first_completion_text(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise InvalidModelOutput("Model response has no completion content")
        if not isinstance(content, str) or not content.strip():
            raise InvalidModelOutput("Model completion content is empty")
        return content

    async def check_ready(self) -> bool:
        if not self.config.has_credential:
            return False
        try:
            async with self._client() as client:
                response = await client.get("/v1/models")
            return response.is_success
        except httpx.HTTPError:
            logger.warning("model readiness check failed", extra={"model": self.model})
            return False
