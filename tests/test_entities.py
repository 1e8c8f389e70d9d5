"""Tests for core entities."""

from datetime import datetime, timezone

import pytest

from scam_analyzer.core import (
    AnalysisRequest,
    AnalysisResult,
    RiskLevel,
    SuspiciousPassage,
    ThreatLabel,
)


def test_risk_level_ordering() -> None:
    """Test risk levels compare by severity."""
    assert RiskLevel.SAFE < RiskLevel.LOW < RiskLevel.MEDIUM < RiskLevel.HIGH < RiskLevel.CRITICAL
    assert max([RiskLevel.MEDIUM, RiskLevel.CRITICAL, RiskLevel.LOW]) == RiskLevel.CRITICAL
    assert RiskLevel("HIGH") >= RiskLevel.HIGH


def test_threat_label_recognize() -> None:
    """Test raw tag recognition."""
    assert ThreatLabel.recognize("TOO_GOOD_TO_BE_TRUE") == ThreatLabel.TOO_GOOD
    assert ThreatLabel.recognize("urgency") is None
    assert ThreatLabel.recognize(None) is None


def test_request_requires_url() -> None:
    """Test request validation."""
    with pytest.raises(ValueError, match="URL cannot be empty"):
        AnalysisRequest(url="")


def test_request_target_domain() -> None:
    """Test explicit domain wins over the URL host."""
    assert AnalysisRequest(url="https://Shop.Example.com/deal").target_domain == "shop.example.com"
    assert AnalysisRequest(url="https://a.example.com", domain="example.com").target_domain == "example.com"


def test_result_serialization() -> None:
    """Test a result survives the storage shape."""
    result = AnalysisResult(
        risk_level=RiskLevel.HIGH,
        threats=(ThreatLabel.URGENCY, ThreatLabel.SENSITIVE_DATA),
        explanation="Asks for card details under a countdown",
        confidence=0.85,
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        suspicious_passages=(
            SuspiciousPassage(text="Only 2 minutes left", labels=(ThreatLabel.URGENCY,), confidence=0.9),
        ),
    )

    data = result.to_dict()

    assert data["riskLevel"] == "HIGH"
    assert data["threats"] == ["URGENCY", "SENSITIVE_DATA_REQ"]
    assert data["suspiciousPassages"][0]["labels"] == ["URGENCY"]
    assert AnalysisResult.from_dict(data) == result


def test_result_without_passages() -> None:
    """Test passages are omitted when absent."""
    result = AnalysisResult(risk_level=RiskLevel.SAFE, threats=(), explanation="ok", confidence=0.9)

    assert "suspiciousPassages" not in result.to_dict()
    assert result.timestamp.tzinfo is not None
