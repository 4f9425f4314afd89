from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high", "critical"]


class AnalysisType(str, Enum):
    IOC_DETECTION = "ioc_detection"
    THREAT_CLASSIFICATION = "threat_classification"
    ANOMALY_DETECTION = "anomaly_detection"
    ENTITY_EXTRACTION = "entity_extraction"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class AnalysisRequest(FrozenModel):
    logs: List[str] = Field(..., min_length=1, description="Raw log lines or '<file>: <N> entries' summaries")
    analysisType: AnalysisType = Field(AnalysisType.IOC_DETECTION, description="Kind of analysis requested")
    context: Optional[str] = Field(None, description="Analyst supplied framing")


class IOC(FrozenModel):
    type: str
    value: str
    confidence: float = Field(..., ge=0, le=1)
    severity: Severity
    description: str = ""
    mitre_tactics: Optional[List[str]] = None
    threat_actor: Optional[str] = None
    malware_family: Optional[str] = None


class Threat(FrozenModel):
    name: str
    confidence: float
    description: str = ""
    mitre_attack_id: Optional[str] = None


class Anomaly(FrozenModel):
    description: str
    severity: str
    timestamp: str = ""
    affected_systems: List[str] = Field(default_factory=list)


class AttackTimelineEvent(FrozenModel):
    timestamp: str
    event: str
    severity: str = "medium"
    mitre_technique: Optional[str] = None


class MitreMapping(FrozenModel):
    technique_id: str
    technique_name: str
    tactic: str
    description: str = ""
    confidence: float = Field(0.0, ge=0, le=1)


class AnalysisSummary(FrozenModel):
    total_events: int = 0
    high_risk_events: int = 0
    threat_score: int = Field(0, ge=0, le=100)
    recommended_actions: List[str] = Field(default_factory=list)
    attack_timeline: Optional[List[AttackTimelineEvent]] = None
    executive_summary: Optional[str] = None
    key_findings: Optional[List[str]] = None
    mitre_mapping: Optional[List[MitreMapping]] = None


class AnalysisResult(FrozenModel):
    iocs: List[IOC]
    threats: List[Threat]
    anomalies: List[Anomaly]
    summary: AnalysisSummary

    def to_response(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
