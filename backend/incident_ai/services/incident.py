"""
Incident session helpers used by the dashboard: turns uploaded-file metadata
into log summary lines and tracks one incident from upload to completed analysis.
State lives only in memory for the session.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from incident_ai.schemas.analysis import AnalysisResult
from incident_ai.services.mitre import threat_type as mitre_threat_type


class IncidentStatus(str, Enum):
    INITIAL = "initial"
    ANALYZING = "analyzing"
    COMPLETE = "complete"


class InvalidTransition(Exception):
    pass


def incident_severity(threat_score: Optional[int]) -> str:
    score = threat_score or 0
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def log_entry_summaries(files: Sequence[Dict[str, Any]]) -> List[str]:
    """
    ["<filename>: <N> entries", ...] for each uploaded file.
    """
    summaries = []
    for f in files:
        filename = str(f.get("filename") or f.get("name") or "unknown")
        entries = f.get("entries") or 0
        summaries.append(f"{filename}: {entries} entries")
    return summaries


@dataclass
class IncidentSession:
    status: IncidentStatus = IncidentStatus.INITIAL
    logs: List[Dict[str, Any]] = field(default_factory=list)
    analysis: Optional[AnalysisResult] = None
    severity: str = "unknown"
    threat_type: Optional[str] = None

    def logs_uploaded(self, files: Sequence[Dict[str, Any]]) -> None:
        if self.status != IncidentStatus.INITIAL:
            raise InvalidTransition(f"cannot upload logs while {self.status.value}")
        if not files:
            raise InvalidTransition("no log files uploaded")
        self.logs = list(files)
        self.status = IncidentStatus.ANALYZING

    def analysis_completed(self, result: AnalysisResult) -> None:
        if self.status != IncidentStatus.ANALYZING:
            raise InvalidTransition(f"cannot complete analysis while {self.status.value}")
        self.analysis = result
        self.severity = incident_severity(result.summary.threat_score)
        self.threat_type = mitre_threat_type(result.summary.mitre_mapping or [])
        self.status = IncidentStatus.COMPLETE

    def log_lines(self) -> List[str]:
        return log_entry_summaries(self.logs)

    def reset(self) -> None:
        self.status = IncidentStatus.INITIAL
        self.logs = []
        self.analysis = None
        self.severity = "unknown"
        self.threat_type = None
