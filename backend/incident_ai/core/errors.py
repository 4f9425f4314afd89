"""
Error taxonomy for log analysis.

RequestValidationError subclasses are client mistakes and surface as HTTP 400.
ModelUnavailable subclasses are absorbed by the analysis service, which
substitutes the fallback result instead of failing the request.
"""
from typing import Optional


class AnalysisError(Exception):
    reason = "analysis_error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class RequestValidationError(AnalysisError):
    reason = "invalid_request"


class InvalidLogs(RequestValidationError):
    reason = "invalid_logs"


class MalformedPayload(RequestValidationError):
    reason = "malformed_payload"


class InvalidAnalysisType(RequestValidationError):
    reason = "invalid_analysis_type"


class ModelUnavailable(AnalysisError):
    reason = "model_unavailable"


class MissingCredential(ModelUnavailable):
    reason = "missing_credential"


class AuthError(ModelUnavailable):
    reason = "auth_error"


class RateLimitError(ModelUnavailable):
    reason = "rate_limited"


class NetworkError(ModelUnavailable):
    reason = "network_error"


class ModelTimeout(ModelUnavailable):
    reason = "timeout"


class InvalidModelOutput(ModelUnavailable):
    reason = "invalid_model_output"
