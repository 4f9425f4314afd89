import json

import pytest

from incident_ai.core.errors import InvalidModelOutput
from incident_ai.services.normalizer import (
    SEVERITIES,
    clean_model_output,
    compute_threat_score,
    fallback_result,
    normalize_result,
    normalize_severity,
)

from conftest import model_response


def _ioc(severity="high", confidence=0.5, value="10.0.0.1"):
    return {"type": "ip_address", "value": value, "confidence": confidence, "severity": severity, "description": ""}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("CRITICAL", "critical"),
        ("High", "high"),
        (" low ", "medium"),
        ("medium", "medium"),
        ("banana", "medium"),
        ("", "medium"),
        (None, "medium"),
        (7, "medium"),
    ],
)
def test_normalize_severity(value, expected):
    assert normalize_severity(value) == expected


@pytest.mark.parametrize("value", ["CRITICAL", "banana", "Low", "severe", ""])
def test_normalize_severity_is_idempotent(value):
    once = normalize_severity(value)
    assert normalize_severity(once) == once
    assert once in SEVERITIES


def test_compute_threat_score():
    iocs = [_ioc("critical"), _ioc("critical"), _ioc("high"), _ioc("low")]
    assert compute_threat_score(iocs) == 65
    assert compute_threat_score([_ioc("critical")] * 5) == 100
    assert compute_threat_score([]) == 0


@pytest.mark.parametrize("missing", [0, None, "absent"])
def test_threat_score_backfilled_when_falsy(missing):
    doc = model_response(iocs=[_ioc("CRITICAL"), _ioc("critical"), _ioc("High")])
    if missing == "absent":
        del doc["summary"]["threat_score"]
    else:
        doc["summary"]["threat_score"] = missing

    result = normalize_result(doc)
    assert result.summary.threat_score == 65


def test_threat_score_kept_when_present():
    doc = model_response(iocs=[_ioc("critical")], threat_score=42)
    assert normalize_result(doc).summary.threat_score == 42


def test_threat_score_clamped():
    doc = model_response(iocs=[], threat_score=250)
    assert normalize_result(doc).summary.threat_score == 100


def test_oversized_integer_threat_score_clamped():
    doc = model_response(iocs=[], threat_score=10 ** 400)
    assert normalize_result(json.dumps(doc)).summary.threat_score == 100


def test_ioc_fields_coerced():
    doc = model_response(iocs=[_ioc("URGENT", confidence=1.7), _ioc("Critical", confidence=-0.2)], threat_score=50)
    result = normalize_result(doc)
    assert [i.severity for i in result.iocs] == ["medium", "critical"]
    assert [i.confidence for i in result.iocs] == [1.0, 0.0]


def test_anomaly_severity_left_as_returned():
    result = normalize_result(model_response(iocs=[]))
    assert result.anomalies[0].severity == "High"


def test_mitre_mapping_confidence_clamped():
    mapping = [{"technique_id": "T1110", "technique_name": "Brute Force", "tactic": "Credential Access", "confidence": 3}]
    result = normalize_result(model_response(iocs=[], threat_score=10, mitre_mapping=mapping))
    assert result.summary.mitre_mapping[0].confidence == 1.0


def test_normalize_accepts_fenced_text():
    text = "Here is the analysis:\n```json\n" + json.dumps(model_response(iocs=[_ioc()])) + "\n```"
    result = normalize_result(text)
    assert result.iocs[0].value == "10.0.0.1"
    assert result.summary.threat_score == 15


def test_clean_model_output_strips_fences():
    assert clean_model_output("```json\n{}\n```") == "{}"
    assert clean_model_output("") == ""


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"iocs": [], "threats": [], "anomalies": []}),
        json.dumps({"iocs": "nope", "threats": [], "anomalies": [], "summary": {}}),
        json.dumps({"iocs": [], "threats": [], "summary": {}}),
        json.dumps(dict(model_response(), summary=[])),
        json.dumps(model_response(iocs=[_ioc(confidence="very")])),
        json.dumps(model_response(iocs=["10.0.0.1"])),
        json.dumps(model_response(iocs=[{"severity": "high", "confidence": 0.5}])),
        json.dumps(model_response(threat_score=0)).replace("\"threat_score\": 0", "\"threat_score\": 1e999"),
        json.dumps(model_response(threat_score=float("inf"))),
        json.dumps(model_response(iocs=[_ioc(confidence=10 ** 400)])),
        '{"iocs": ' + "[" * 100000 + "]" * 100000 + "}",
    ],
)
def test_incompatible_documents_rejected(raw):
    with pytest.raises(InvalidModelOutput):
        normalize_result(raw)


def test_fallback_result_is_deterministic_and_valid():
    first = fallback_result()
    second = fallback_result()
    assert first == second
    assert first is not second
    assert first.summary.threat_score == 87
    assert len(first.iocs) >= 1
    for ioc in first.iocs:
        assert 0 <= ioc.confidence <= 1
        assert ioc.severity in SEVERITIES
    assert first.summary.executive_summary
    assert first.summary.attack_timeline
