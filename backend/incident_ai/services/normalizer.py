import copy
import json
import math
from typing import Any, Dict, Iterable, List, Union

from pydantic import ValidationError

from incident_ai.core.errors import AnalysisError, InvalidModelOutput
from incident_ai.schemas.analysis import IOC, AnalysisResult

SEVERITIES = ("low", "medium", "high", "critical")
DEFAULT_SEVERITY = "medium"

_REQUIRED_LISTS = ("iocs", "threats", "anomalies")


# Canned "known-bad" incident returned whenever the model can't be used.
_FALLBACK_RESULT: Dict[str, Any] = {
    "iocs": [
        {
            "type": "ip_address",
            "value": "192.168.1.100",
            "confidence": 0.95,
            "severity": "critical",
            "description": "Command & Control server with multiple connections",
            "mitre_tactics": ["command-and-control", "exfiltration"],
            "threat_actor": "APT29",
            "malware_family": "Cobalt Strike",
        }
    ],
    "threats": [
        {
            "name": "Ransomware Attack",
            "confidence": 0.87,
            "description": "Multi-stage ransomware attack with data exfiltration",
            "mitre_attack_id": "T1486",
        }
    ],
    "anomalies": [
        {
            "description": "Unusual process behavior with high network activity",
            "severity": "high",
            "timestamp": "2024-01-15 14:25:22",
            "affected_systems": ["ENDPOINT-01"],
        }
    ],
    "summary": {
        "total_events": 30,
        "high_risk_events": 12,
        "threat_score": 87,
        "recommended_actions": [
            "Isolate affected systems",
            "Block C2 IP addresses",
            "Collect forensic evidence",
        ],
        "executive_summary": (
            "This incident represents a sophisticated multi-stage ransomware attack with clear "
            "indicators of advanced persistent threat (APT) tactics. The attack demonstrates a "
            "complete kill chain from initial compromise to data exfiltration and encryption."
        ),
        "key_findings": [
            "Malware deployment in system32 directory with persistence mechanisms",
            "Command & Control communication with external server (192.168.1.100)",
            "Data exfiltration of 750MB across multiple sessions",
            "File encryption affecting 1,247 files with ransom note deployment",
        ],
        "attack_timeline": [
            {
                "timestamp": "2024-01-15 14:25:18",
                "event": "Suspicious svchost.exe process created with unusual network behavior",
                "severity": "medium",
                "mitre_technique": "T1055",
            },
            {
                "timestamp": "2024-01-15 14:25:20",
                "event": "Malicious executable dropped in system32 directory",
                "severity": "high",
                "mitre_technique": "T1105",
            },
            {
                "timestamp": "2024-01-15 14:25:21",
                "event": "Registry modifications for startup persistence",
                "severity": "high",
                "mitre_technique": "T1547.001",
            },
            {
                "timestamp": "2024-01-15 14:27:30",
                "event": "DNS resolution and communication with C2 server",
                "severity": "critical",
                "mitre_technique": "T1071.001",
            },
            {
                "timestamp": "2024-01-15 14:32:00",
                "event": "File encryption and ransom note deployment",
                "severity": "critical",
                "mitre_technique": "T1486",
            },
        ],
        "mitre_mapping": [
            {
                "technique_id": "T1055",
                "technique_name": "Process Injection",
                "tactic": "Defense Evasion",
                "description": "Code injected into svchost.exe to evade process-based defenses",
                "confidence": 0.82,
            },
            {
                "technique_id": "T1071.001",
                "technique_name": "Web Protocols",
                "tactic": "Command and Control",
                "description": "C2 traffic to 192.168.1.100 over HTTPS",
                "confidence": 0.91,
            },
            {
                "technique_id": "T1041",
                "technique_name": "Exfiltration Over C2 Channel",
                "tactic": "Exfiltration",
                "description": "750MB transferred over the established C2 channel",
                "confidence": 0.88,
            },
            {
                "technique_id": "T1486",
                "technique_name": "Data Encrypted for Impact",
                "tactic": "Impact",
                "description": "Files encrypted and ransom note dropped",
                "confidence": 0.95,
            },
        ],
    },
}


def fallback_result() -> AnalysisResult:
    return AnalysisResult.model_validate(copy.deepcopy(_FALLBACK_RESULT))


def normalize_severity(value: Any) -> str:
    sev = str(value if value is not None else "").lower()
    if sev in SEVERITIES:
        return sev
    return DEFAULT_SEVERITY


def clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidModelOutput(f"confidence is not numeric: {value!r}")
    if confidence != confidence:
        raise InvalidModelOutput("confidence is NaN")
    return max(0.0, min(1.0, confidence))


def compute_threat_score(iocs: Iterable[Union[IOC, Dict[str, Any]]]) -> int:
    critical = 0
    high = 0
    for ioc in iocs:
        severity = ioc.severity if isinstance(ioc, IOC) else ioc.get("severity")
        if severity == "critical":
            critical += 1
        elif severity == "high":
            high += 1
    return min(100, critical * 25 + high * 15)


# =========================================================
# Model output cleaning
# =========================================================
def clean_model_output(text: str) -> str:
    """
    Removes markdown code fences like ```json ... ``` around the payload.
    """
    if not text:
        return ""
    cleaned = text.strip()
    cleaned = cleaned.replace("```json", "").replace("```JSON", "")
    return cleaned.replace("```", "").strip()


def extract_json_block(text: str) -> str:
    """
    Models sometimes add prose around the JSON; keep the outermost object.
    """
    if not text:
        return ""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start:end + 1]
    return text


def parse_model_output(text: str) -> Dict[str, Any]:
    extracted = extract_json_block(clean_model_output(text))
    try:
        parsed = json.loads(extracted)
    except (ValueError, RecursionError) as exc:
        raise InvalidModelOutput("Model output is not valid JSON", details=str(exc))
    if not isinstance(parsed, dict):
        raise InvalidModelOutput("Model output is not a JSON object")
    return parsed


# =========================================================
# Result normalization
# =========================================================
def _normalize_iocs(raw_iocs: List[Any]) -> List[Dict[str, Any]]:
    iocs = []
    for raw in raw_iocs:
        if not isinstance(raw, dict):
            raise InvalidModelOutput("IOC entry is not an object")
        ioc = dict(raw)
        ioc["confidence"] = clamp_confidence(ioc.get("confidence", 0))
        ioc["severity"] = normalize_severity(ioc.get("severity"))
        iocs.append(ioc)
    return iocs


def _normalize_threat_score(value: Any, iocs: List[Dict[str, Any]]) -> int:
    if not value:
        return compute_threat_score(iocs)
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidModelOutput(f"threat_score is not finite: {value!r}")
    try:
        score = int(value) if isinstance(value, int) else int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise InvalidModelOutput(f"threat_score is not numeric: {value!r}")
    if score == 0:
        return compute_threat_score(iocs)
    return max(0, min(100, score))


def _normalize_mitre_mapping(mapping: Any) -> Any:
    if not isinstance(mapping, list):
        return mapping
    normalized = []
    for entry in mapping:
        if isinstance(entry, dict) and "confidence" in entry:
            entry = dict(entry, confidence=clamp_confidence(entry["confidence"]))
        normalized.append(entry)
    return normalized


def normalize_result(raw: Union[str, Dict[str, Any]]) -> AnalysisResult:
    """
    Turns model output into a valid AnalysisResult.

    IOC confidence is clamped to [0, 1] and severities are coerced onto the
    four-level scale; a missing or zero threat_score is recomputed from the
    IOC severities. A document missing any top-level section, or whose
    sections have the wrong shape, raises InvalidModelOutput; so does any
    other error hit while reading the document.
    """
    try:
        return _normalize_document(raw)
    except AnalysisError:
        raise
    except Exception as exc:
        raise InvalidModelOutput("Model output could not be normalized", details=repr(exc))


def _normalize_document(raw: Union[str, Dict[str, Any]]) -> AnalysisResult:
    data = parse_model_output(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise InvalidModelOutput("Model output is not a JSON object")

    for key in _REQUIRED_LISTS:
        if not isinstance(data.get(key), list):
            raise InvalidModelOutput(f"Model output is missing the '{key}' list")
    summary = data.get("summary")
    if not isinstance(summary, dict):
        raise InvalidModelOutput("Model output is missing the 'summary' object")

    iocs = _normalize_iocs(data["iocs"])
    summary = dict(summary)
    summary["threat_score"] = _normalize_threat_score(summary.get("threat_score"), iocs)
    if "mitre_mapping" in summary:
        summary["mitre_mapping"] = _normalize_mitre_mapping(summary["mitre_mapping"])

    document = dict(data, iocs=iocs, summary=summary)
    try:
        return AnalysisResult.model_validate(document)
    except ValidationError as exc:
        raise InvalidModelOutput("Model output does not match the analysis schema", details=str(exc))
