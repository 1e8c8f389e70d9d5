"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse


class RiskLevel(str, Enum):
    """Risk level of an analyzed page, ordered from least to most severe."""

    SAFE = "SAFE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity < other.severity

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity <= other.severity

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity > other.severity

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.severity >= other.severity


_RISK_ORDER = list(RiskLevel)


class ThreatLabel(str, Enum):
    """Recognized scam indicator tags."""

    URGENCY = "URGENCY"
    PRESSURE = "PRESSURE"
    TOO_GOOD = "TOO_GOOD_TO_BE_TRUE"
    POOR_GRAMMAR = "POOR_GRAMMAR"
    SENSITIVE_DATA = "SENSITIVE_DATA_REQ"
    FAKE_TRUST = "FAKE_TRUST_SIGNALS"
    SUSPICIOUS_LINK = "SUSPICIOUS_LINK"
    IMPERSONATION = "IMPERSONATION"
    SUSPICIOUS_DOMAIN = "SUSPICIOUS_DOMAIN"

    @classmethod
    def recognize(cls, value: Any) -> Optional["ThreatLabel"]:
        """Return the label for a raw tag, or None if the tag is unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class ExtractedLink:
    """Link sampled from the page."""

    href: str
    text: str = ""
    is_external: bool = False


@dataclass(frozen=True)
class SuspiciousLink:
    """Link flagged by URL pattern checks."""

    href: str
    text: str = ""
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractedForm:
    """Form found on the page."""

    action: str = ""
    method: str = ""
    fields: tuple[str, ...] = ()
    has_sensitive_fields: bool = False


@dataclass(frozen=True)
class AnalysisRequest:
    """Page description submitted for analysis."""

    url: str
    body_text: str = ""
    domain: Optional[str] = None
    title: str = ""
    meta_description: str = ""
    meta_keywords: str = ""
    headings: tuple[str, ...] = ()
    links: tuple[ExtractedLink, ...] = ()
    suspicious_links: tuple[SuspiciousLink, ...] = ()
    external_link_count: Optional[int] = None
    forms: tuple[ExtractedForm, ...] = ()
    url_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("URL cannot be empty")

    @property
    def target_domain(self) -> str:
        """Domain the request is about, falling back to the URL host."""
        if self.domain:
            return self.domain
        return urlparse(self.url).hostname or self.url


@dataclass(frozen=True)
class SuspiciousPassage:
    """Verbatim page passage the model flagged."""

    text: str
    labels: tuple[ThreatLabel, ...]
    confidence: float
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "labels": [label.value for label in self.labels],
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Validated verdict for one page."""

    risk_level: RiskLevel
    threats: tuple[ThreatLabel, ...]
    explanation: str
    confidence: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    suspicious_passages: Optional[tuple[SuspiciousPassage, ...]] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase shape stored in the local scope."""
        data: dict[str, Any] = {
            "riskLevel": self.risk_level.value,
            "threats": [threat.value for threat in self.threats],
            "explanation": self.explanation,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.suspicious_passages is not None:
            data["suspiciousPassages"] = [p.to_dict() for p in self.suspicious_passages]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        """Rebuild a result previously produced by :meth:`to_dict`."""
        passages = data.get("suspiciousPassages")
        return cls(
            risk_level=RiskLevel(data["riskLevel"]),
            threats=tuple(ThreatLabel(t) for t in data.get("threats", [])),
            explanation=data.get("explanation", ""),
            confidence=float(data.get("confidence", 0.5)),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            suspicious_passages=None if passages is None else tuple(
                SuspiciousPassage(
                    text=p["text"],
                    labels=tuple(ThreatLabel(label) for label in p.get("labels", [])),
                    confidence=float(p.get("confidence", 0.5)),
                    reason=p.get("reason", ""),
                )
                for p in passages
            ),
        )


@dataclass(frozen=True)
class ConnectionReport:
    """Outcome of a connectivity check."""

    success: bool
    message: str
    latency_ms: int
