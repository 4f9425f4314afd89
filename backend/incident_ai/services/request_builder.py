"""
Builds the analysis request and the prompt sent to the model.
Everything here is pure: identical inputs always give identical prompts.
"""
import json
from typing import Any, Dict, List

from incident_ai.core.config import ModelConfig
from incident_ai.core.errors import InvalidAnalysisType, InvalidLogs, MalformedPayload
from incident_ai.schemas.analysis import AnalysisRequest, AnalysisType

SYSTEM_PROMPT = (
    "You are an expert cybersecurity analyst specializing in log analysis and threat detection.\n"
    "Analyze the provided logs and extract indicators of compromise (IOCs), identify threats, and detect anomalies.\n"
    "Respond with structured JSON containing IOCs, threats, anomalies, and a summary with threat scoring.\n"
    "Use MITRE ATT&CK framework references where applicable."
)

_RESPONSE_SCHEMA = """{
  "iocs": [
    {
      "type": "ip_address | file_hash | domain | ...",
      "value": "string",
      "confidence": 0.0,
      "severity": "low | medium | high | critical",
      "description": "string",
      "mitre_tactics": ["string"],
      "threat_actor": "string",
      "malware_family": "string"
    }
  ],
  "threats": [
    {"name": "string", "confidence": 0.0, "description": "string", "mitre_attack_id": "T0000"}
  ],
  "anomalies": [
    {"description": "string", "severity": "string", "timestamp": "string", "affected_systems": ["string"]}
  ],
  "summary": {
    "total_events": 0,
    "high_risk_events": 0,
    "threat_score": 0,
    "recommended_actions": ["string"],
    "attack_timeline": [
      {"timestamp": "string", "event": "string", "severity": "string", "mitre_technique": "string"}
    ],
    "executive_summary": "string",
    "key_findings": ["string"],
    "mitre_mapping": [
      {"technique_id": "T0000", "technique_name": "string", "tactic": "string", "description": "string", "confidence": 0.0}
    ]
  }
}"""


def parse_payload(body: bytes) -> Dict[str, Any]:
    """
    Decodes the raw HTTP body. Anything that is not a JSON object is malformed.
    """
    if not body:
        raise MalformedPayload("Invalid request: body must be a JSON object")
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedPayload("Invalid request: body is not valid JSON", details=str(exc))
    if not isinstance(payload, dict):
        raise MalformedPayload("Invalid request: body must be a JSON object")
    return payload


def validate_request(payload: Dict[str, Any]) -> AnalysisRequest:
    logs = payload.get("logs")
    if not isinstance(logs, list) or len(logs) == 0:
        raise InvalidLogs("Invalid request: logs array is required")
    if not all(isinstance(line, str) for line in logs):
        raise InvalidLogs("Invalid request: logs must contain only strings")

    raw_type = payload["analysisType"] if "analysisType" in payload else AnalysisType.IOC_DETECTION.value
    try:
        analysis_type = AnalysisType(raw_type)
    except ValueError:
        allowed = ", ".join(t.value for t in AnalysisType)
        raise InvalidAnalysisType(f"Invalid request: analysisType must be one of {allowed}")

    context = payload.get("context")
    if context is not None and not isinstance(context, str):
        context = str(context)

    return AnalysisRequest(logs=logs, analysisType=analysis_type, context=context or None)


def build_prompt(request: AnalysisRequest) -> str:
    log_block = "\n".join(request.logs)
    context_line = f"CONTEXT: {request.context}\n" if request.context else ""

    return f"""Analyze the following security logs for indicators of compromise, threats, and anomalies:

LOGS:
{log_block}

ANALYSIS TYPE: {request.analysisType.value}
{context_line}
Return ONLY valid JSON (no markdown, no extra text) matching this schema:
{_RESPONSE_SCHEMA}

Rules:
- confidence values must be between 0 and 1
- severity must be one of low, medium, high, critical
- threat_score must be an integer between 0 and 100
- reference MITRE ATT&CK technique IDs where applicable
"""


def build_messages(prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def build_completion_payload(prompt: str, config: ModelConfig) -> Dict[str, Any]:
    return {
        "model": config.model,
        "messages": build_messages(prompt),
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "stream": False,
    }
