"""Tests for parsing model output."""

import json

import pytest

from scam_analyzer.core import ApiError, ApiErrorKind, RiskLevel, ThreatLabel
from scam_analyzer.core.response_parser import (
    clamp_confidence,
    extract_json,
    filter_threats,
    parse_analysis_result,
)


def test_extract_json_from_fence() -> None:
    """Test JSON extraction from fenced blocks."""
    assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json('Here you go:\n```\n{"a": 1}\n```\nDone') == '{"a": 1}'
    assert extract_json('  {"a": 1}  ') == '{"a": 1}'


def test_parse_fenced_result() -> None:
    """Test a fenced JSON answer parses into a result."""
    content = '```json\n{"riskLevel":"LOW","threats":[],"explanation":"x","confidence":0.7}\n```'

    result = parse_analysis_result(content)

    assert result.risk_level == RiskLevel.LOW
    assert result.confidence == 0.7
    assert result.threats == ()
    assert result.explanation == "x"
    assert result.suspicious_passages is None


def test_confidence_is_clamped_or_defaulted() -> None:
    """Test out-of-range and non-numeric confidence."""
    high = parse_analysis_result('{"riskLevel": "HIGH", "confidence": 1.7}')
    text = parse_analysis_result('{"riskLevel": "HIGH", "confidence": "high"}')
    missing = parse_analysis_result('{"riskLevel": "HIGH"}')

    assert high.confidence == 1.0
    assert text.confidence == 0.5
    assert missing.confidence == 0.5


def test_clamp_confidence() -> None:
    """Test confidence coercion edge cases."""
    assert clamp_confidence(-3) == 0.0
    assert clamp_confidence(1) == 1.0
    assert clamp_confidence(True) == 0.5
    assert clamp_confidence(float("nan")) == 0.5
    assert clamp_confidence(None, default=0.9) == 0.9


def test_unknown_threats_are_dropped() -> None:
    """Test threat filtering keeps known tags once, in order."""
    labels = filter_threats(["URGENCY", "MADE_UP", "IMPERSONATION", "URGENCY", 7])

    assert labels == (ThreatLabel.URGENCY, ThreatLabel.IMPERSONATION)
    assert filter_threats("URGENCY") == ()


def test_missing_explanation_gets_default() -> None:
    """Test explanation fallback."""
    result = parse_analysis_result('{"riskLevel": "SAFE", "threats": "none"}')

    assert result.explanation == "No explanation provided"
    assert result.threats == ()


def test_invalid_risk_level_rejected() -> None:
    """Test the risk level must be one of the known values."""
    for content in ('{"riskLevel": "EXTREME"}', '{"riskLevel": "low"}', '{"threats": []}'):
        with pytest.raises(ApiError) as exc_info:
            parse_analysis_result(content)
        assert exc_info.value.kind == ApiErrorKind.INVALID_RESPONSE
        assert exc_info.value.retryable is False


def test_invalid_json_rejected() -> None:
    """Test non-JSON model output."""
    with pytest.raises(ApiError) as exc_info:
        parse_analysis_result("I think this page is fine.")

    assert exc_info.value.kind == ApiErrorKind.INVALID_RESPONSE
    assert exc_info.value.message.startswith("Invalid LLM response format")

    with pytest.raises(ApiError):
        parse_analysis_result('["riskLevel", "LOW"]')


def test_suspicious_passages() -> None:
    """Test passages are validated, truncated and capped."""
    passages = [
        {"text": "Act now!", "labels": ["URGENCY", "BOGUS"], "confidence": 0.9, "reason": "pressure"},
        {"text": "", "labels": ["URGENCY"]},
        "not an object",
        {"text": "y" * 500, "labels": [], "reason": "r" * 500},
    ]
    passages.extend({"text": f"passage {i}"} for i in range(30))
    content = json.dumps({"riskLevel": "MEDIUM", "confidence": 0.6, "suspiciousPassages": passages})

    result = parse_analysis_result(content)

    assert result.suspicious_passages is not None
    assert len(result.suspicious_passages) == 20
    first, second = result.suspicious_passages[:2]
    assert first.text == "Act now!"
    assert first.labels == (ThreatLabel.URGENCY,)
    assert first.confidence == 0.9
    assert len(second.text) == 200
    assert len(second.reason) == 200
    # Missing confidence falls back to the overall confidence
    assert second.confidence == 0.6
