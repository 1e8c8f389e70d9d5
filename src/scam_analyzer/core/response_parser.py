"""Turn free-form model output into a validated AnalysisResult."""

import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

from scam_analyzer.core.entities import (
    AnalysisResult,
    RiskLevel,
    SuspiciousPassage,
    ThreatLabel,
)
from scam_analyzer.core.errors import ApiError, ApiErrorKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
DEFAULT_EXPLANATION = "No explanation provided"
MAX_PASSAGE_CHARS = 200
MAX_REASON_CHARS = 200
MAX_PASSAGES = 20

_JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)
_ANY_FENCE = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)


def extract_json(text: str) -> str:
    """Extract JSON from a markdown code block, or return the raw text."""
    match = _JSON_FENCE.search(text) or _ANY_FENCE.search(text)
    candidate = match.group(1) if match else text
    return candidate.strip()


def clamp_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Clamp numeric confidence to [0, 1]; anything else gets ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return max(0.0, min(1.0, float(value)))


def filter_threats(raw: Any) -> tuple[ThreatLabel, ...]:
    """Keep recognized threat tags, in order, without duplicates."""
    if not isinstance(raw, list):
        return ()
    labels: list[ThreatLabel] = []
    for value in raw:
        label = ThreatLabel.recognize(value)
        if label is not None and label not in labels:
            labels.append(label)
    return tuple(labels)


def _parse_passages(raw: Any, parent_confidence: float) -> Optional[tuple[SuspiciousPassage, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        logger.debug("Ignoring non-list suspiciousPassages: %r", type(raw).__name__)
        return None

    passages: list[SuspiciousPassage] = []
    for entry in raw:
        if len(passages) >= MAX_PASSAGES:
            break
        if not isinstance(entry, dict):
            continue
        text = entry.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        reason = entry.get("reason")
        passages.append(SuspiciousPassage(
            text=text[:MAX_PASSAGE_CHARS],
            labels=filter_threats(entry.get("labels")),
            confidence=clamp_confidence(entry.get("confidence"), default=parent_confidence),
            reason=reason[:MAX_REASON_CHARS] if isinstance(reason, str) else "",
        ))
    return tuple(passages)


def parse_analysis_result(content: str) -> AnalysisResult:
    """Parse and validate model output.

    Only ``riskLevel`` is fatal. Other fields are coerced independently:
    unknown threat tags are dropped, confidence is clamped or defaulted,
    and passages are truncated.

    Raises:
        ApiError: INVALID_RESPONSE when the text is not JSON or the risk
            level is missing or unknown.
    """
    json_text = extract_json(content)
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.warning("Model returned invalid JSON: %s", e)
        raise ApiError(
            f"Invalid LLM response format: {e}",
            ApiErrorKind.INVALID_RESPONSE,
            retryable=False,
        ) from e

    if not isinstance(parsed, dict):
        raise ApiError(
            "Invalid LLM response format: expected a JSON object",
            ApiErrorKind.INVALID_RESPONSE,
            retryable=False,
        )

    raw_level = parsed.get("riskLevel")
    try:
        risk_level = RiskLevel(raw_level)
    except ValueError:
        raise ApiError(
            f"Invalid LLM response format: invalid or missing riskLevel {raw_level!r}",
            ApiErrorKind.INVALID_RESPONSE,
            retryable=False,
        ) from None

    confidence = clamp_confidence(parsed.get("confidence"))
    explanation = parsed.get("explanation")
    if not isinstance(explanation, str) or not explanation:
        explanation = DEFAULT_EXPLANATION

    return AnalysisResult(
        risk_level=risk_level,
        threats=filter_threats(parsed.get("threats")),
        explanation=explanation,
        confidence=confidence,
        timestamp=datetime.now(timezone.utc),
        suspicious_passages=_parse_passages(parsed.get("suspiciousPassages"), confidence),
    )
