"""Core interfaces for adapters."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from scam_analyzer.core.backoff import RetryConfig
from scam_analyzer.core.entities import AnalysisRequest, AnalysisResult, ConnectionReport


class LLMClient(ABC):
    """Interface for remote scam analysis."""

    @abstractmethod
    async def analyze_page(
        self,
        request: AnalysisRequest,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisResult:
        """Analyze a page, raising ApiError on terminal failure."""
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionReport:
        """Probe the endpoint once without retries."""
        pass


class KeyValueStore(ABC):
    """Async key-value storage scope with no cross-key transactions."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value under a key."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a key if present."""
        pass
