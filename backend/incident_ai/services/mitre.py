"""
Dashboard analytics over the MITRE ATT&CK mapping of an analysis:
weighted technique score, threat type, average confidence and tactic histogram.
"""
import re
from typing import Dict, Optional, Sequence

from incident_ai.schemas.analysis import AnalysisSummary, MitreMapping

# Tactics that weigh 1.5x in the technique score.
_CRITICAL_TACTIC_MARKERS = ("command", "impact", "exfiltration")


def _round_percent(value: float) -> int:
    return int(value * 100 + 0.5)


def _techniques(summary: AnalysisSummary) -> Sequence[MitreMapping]:
    return summary.mitre_mapping or []


def technique_threat_score(techniques: Sequence[MitreMapping]) -> int:
    if not techniques:
        return 0
    weighted = 0.0
    for technique in techniques:
        tactic = technique.tactic.lower()
        weight = 1.5 if any(m in tactic for m in _CRITICAL_TACTIC_MARKERS) else 1.0
        weighted += technique.confidence * weight
    return min(100, _round_percent(weighted / len(techniques)))


def threat_type(techniques: Sequence[MitreMapping]) -> str:
    tactics = [t.tactic.lower() for t in techniques]
    if any("impact" in t and "encrypt" in t for t in tactics):
        return "Ransomware"
    if any("exfiltration" in t for t in tactics):
        return "Data Theft"
    if any("command" in t for t in tactics):
        return "Advanced Persistent Threat"
    return "Malware Infection"


def average_confidence(techniques: Sequence[MitreMapping]) -> int:
    if not techniques:
        return 0
    return _round_percent(sum(t.confidence for t in techniques) / len(techniques))


def tactic_counts(techniques: Sequence[MitreMapping]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for technique in techniques:
        slug = re.sub(r"\s+", "-", technique.tactic.lower())
        counts[slug] = counts.get(slug, 0) + 1
    return counts


def mitre_overview(summary: Optional[AnalysisSummary]) -> Dict[str, object]:
    techniques = _techniques(summary) if summary is not None else []
    return {
        "threat_score": technique_threat_score(techniques),
        "threat_type": threat_type(techniques),
        "average_confidence": average_confidence(techniques),
        "tactic_counts": tactic_counts(techniques),
        "technique_count": len(techniques),
    }
