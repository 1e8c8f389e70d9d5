"""Core domain layer."""

from scam_analyzer.core.analysis_queue import AnalysisQueue, QueueItem, QueueStats
from scam_analyzer.core.backoff import DEFAULT_RETRY_CONFIG, RetryConfig, backoff_delay
from scam_analyzer.core.cache_store import (
    CacheEntry,
    CacheStats,
    CacheStore,
    generate_cache_key,
)
from scam_analyzer.core.entities import (
    AnalysisRequest,
    AnalysisResult,
    ConnectionReport,
    ExtractedForm,
    ExtractedLink,
    RiskLevel,
    SuspiciousLink,
    SuspiciousPassage,
    ThreatLabel,
)
from scam_analyzer.core.errors import (
    AnalysisRejected,
    ApiError,
    ApiErrorKind,
    ConfigurationError,
)
from scam_analyzer.core.interfaces import KeyValueStore, LLMClient
from scam_analyzer.core.rate_limiter import RateLimiter

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "ConnectionReport",
    "ExtractedForm",
    "ExtractedLink",
    "RiskLevel",
    "SuspiciousLink",
    "SuspiciousPassage",
    "ThreatLabel",
    "ApiError",
    "ApiErrorKind",
    "AnalysisRejected",
    "ConfigurationError",
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "backoff_delay",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "generate_cache_key",
    "AnalysisQueue",
    "QueueItem",
    "QueueStats",
    "RateLimiter",
    "KeyValueStore",
    "LLMClient",
]
