"""Business logic use cases."""

import asyncio
import logging
import re
from typing import Optional

from scam_analyzer.adapters.llm import ChatCompletionsClient
from scam_analyzer.config import (
    ApiConfig,
    Settings,
    load_api_config,
    load_trusted_domains,
    save_trusted_domains,
)
from scam_analyzer.core import (
    AnalysisQueue,
    AnalysisRejected,
    AnalysisRequest,
    AnalysisResult,
    ApiError,
    CacheStats,
    CacheStore,
    ConnectionReport,
    KeyValueStore,
    LLMClient,
    QueueItem,
    RateLimiter,
    RiskLevel,
    generate_cache_key,
)
from scam_analyzer.core.backoff import cancelled_error
from scam_analyzer.core.cache_store import normalize_domain
from scam_analyzer.core.redaction import redact_api_keys

logger = logging.getLogger(__name__)

TRUSTED_EXPLANATION = "This domain is in your trusted list and was not analyzed."


def clean_domain(value: str) -> str:
    """Reduce a domain or URL to a bare, normalized host name."""
    value = value.strip()
    value = re.sub(r"^https?://", "", value, flags=re.IGNORECASE)
    return normalize_domain(value.split("/", 1)[0])


def _matches_domain(domain: str, patterns: list[str]) -> bool:
    for pattern in patterns:
        pattern = normalize_domain(pattern)
        if domain == pattern or domain.endswith("." + pattern):
            return True
    return False


class _SharedAnalysis:
    """One remote analysis and the number of callers waiting on it."""

    def __init__(self, task: asyncio.Task) -> None:
        self.task = task
        self.waiters = 0


class AnalysisService:
    """Orchestrates cache lookup, de-duplication, admission and remote analysis.

    The cache, admission queue and rate limiter are owned here and are only
    touched from the event loop, so no locking is needed. Concurrent calls
    for the same cache key share one remote call.
    """

    def __init__(
        self,
        settings: Settings,
        llm_client: LLMClient,
        local_store: Optional[KeyValueStore] = None,
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sync_store: Optional[KeyValueStore] = None,
    ) -> None:
        self.settings = settings
        self.llm_client = llm_client
        self.local_store = local_store
        self.sync_store = sync_store
        self.trusted_domains: list[str] = []
        for domain in settings.trusted_domains:
            self._trust(domain)
        self.cache = cache or CacheStore(
            default_ttl=settings.cache.ttl,
            max_entries=settings.cache.max_entries,
        )
        self.queue: AnalysisQueue[AnalysisRequest] = AnalysisQueue(
            min_interval=settings.queue.min_interval,
            max_size=settings.queue.max_size,
            max_retries=settings.queue.max_retries,
            on_evict=self._reject_evicted,
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=settings.rate_limit.max_requests,
            window=settings.rate_limit.window,
        )
        self._in_flight: dict[str, _SharedAnalysis] = {}
        self._admissions: dict[str, asyncio.Future] = {}
        self._pump_task: Optional[asyncio.Task] = None

    @classmethod
    async def create(
        cls,
        settings: Settings,
        sync_store: KeyValueStore,
        local_store: KeyValueStore,
    ) -> "AnalysisService":
        """Build a service from settings, preferring the API config in the synced scope."""
        stored = await load_api_config(sync_store)
        if stored is not None:
            settings = settings.with_api_config(stored)
        ApiConfig.from_settings(settings).validate()

        service = cls(settings, ChatCompletionsClient(settings), local_store, sync_store=sync_store)
        await service.load()
        return service

    async def load(self) -> int:
        """Restore the persisted cache map and the stored trusted domains."""
        if self.sync_store is not None:
            for domain in await load_trusted_domains(self.sync_store):
                self._trust(domain)

        if self.local_store is None:
            return 0
        count = await self.cache.load(self.local_store)
        logger.info("Loaded %d cached analyses", count)
        return count

    def _trust(self, domain: str) -> bool:
        domain = clean_domain(domain)
        if not domain or domain in self.trusted_domains:
            return False
        self.trusted_domains.append(domain)
        return True

    async def add_trusted_domain(self, domain: str) -> bool:
        """Trust a domain and its subdomains. False if it was already trusted."""
        added = self._trust(domain)
        if added:
            await self._save_trusted()
        return added

    async def remove_trusted_domain(self, domain: str) -> bool:
        """Stop trusting a domain. False if it was not trusted."""
        domain = clean_domain(domain)
        if domain not in self.trusted_domains:
            return False
        self.trusted_domains.remove(domain)
        await self._save_trusted()
        return True

    async def _save_trusted(self) -> None:
        if self.sync_store is not None:
            await save_trusted_domains(self.sync_store, self.trusted_domains)

    async def analyze(
        self,
        request: AnalysisRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisResult:
        """Analyze a page, serving from cache when possible.

        Raises:
            ApiError: terminal failure of the remote call.
            AnalysisRejected: refused by the local rate limiter or evicted
                from the admission queue.
        """
        domain = normalize_domain(request.target_domain)

        if _matches_domain(domain, self.trusted_domains):
            logger.info("Domain %s is trusted, skipping analysis", domain)
            return AnalysisResult(
                risk_level=RiskLevel.SAFE,
                threats=(),
                explanation=TRUSTED_EXPLANATION,
                confidence=1.0,
            )

        key = generate_cache_key(domain, request.body_text, self.settings.cache.content_sample_chars)
        entry = self.cache.get(key)
        if entry is not None:
            logger.info("Cache HIT for %s", key)
            return entry.result

        flight = self._in_flight.get(key)
        if flight is None:
            if not self.rate_limiter.try_acquire():
                wait = self.rate_limiter.time_until_allowed()
                raise AnalysisRejected(f"Too many analysis requests, try again in {wait:.1f}s")

            logger.info("Cache MISS for %s, analyzing %s", key, request.url)
            task = asyncio.ensure_future(self._analyze_uncached(key, domain, request))
            flight = _SharedAnalysis(task)
            self._in_flight[key] = flight
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.info("Analysis already in flight for %s, awaiting it", key)

        return await self._await_shared(key, flight, cancel_event)

    async def _analyze_uncached(
        self,
        key: str,
        domain: str,
        request: AnalysisRequest,
    ) -> AnalysisResult:
        self.queue.enqueue(key, request)
        item = await self._wait_for_admission(key)

        while True:
            try:
                result = await self.llm_client.analyze_page(request)
                break
            except ApiError as e:
                if e.retryable and self.queue.retry(item):
                    logger.info(
                        "Requeueing %s after %s (queue retry %d/%d)",
                        key, e.kind.value, item.retries + 1, self.queue.max_retries,
                    )
                    item = await self._wait_for_admission(key)
                    continue
                logger.warning("Analysis failed for %s: %s", key, redact_api_keys(e.message))
                raise

        self.queue.mark_processed()
        self.cache.put(key, result, url=request.url, ttl=self._ttl_for(domain))
        await self._persist()
        return result

    def _ttl_for(self, domain: str) -> float:
        if _matches_domain(domain, self.settings.cache.dynamic_domains):
            return self.settings.cache.dynamic_ttl
        return self.settings.cache.ttl

    async def _await_shared(
        self,
        key: str,
        flight: _SharedAnalysis,
        cancel_event: Optional[asyncio.Event],
    ) -> AnalysisResult:
        """Wait for a shared analysis; ``cancel_event`` releases only this caller.

        The remote call is aborted once every caller waiting on it has
        cancelled through its own event.
        """
        flight.waiters += 1
        cancelled = False
        try:
            if cancel_event is None:
                return await asyncio.shield(flight.task)

            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            try:
                await asyncio.wait({flight.task, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                cancel_waiter.cancel()
            if flight.task.done():
                return flight.task.result()
            cancelled = True
            raise cancelled_error()
        finally:
            flight.waiters -= 1
            if cancelled and flight.waiters == 0:
                self._abandon(key, flight)

    def _abandon(self, key: str, flight: _SharedAnalysis) -> None:
        if flight.task.done():
            return
        logger.info("Every caller cancelled the analysis of %s, aborting it", key)
        if self._in_flight.get(key) is flight:
            del self._in_flight[key]
        flight.task.cancel()

    def _forget(self, key: str, task: asyncio.Task) -> None:
        flight = self._in_flight.get(key)
        if flight is not None and flight.task is task:
            del self._in_flight[key]
        # Mark the outcome retrieved even when every waiter went away
        if not task.cancelled():
            task.exception()

    async def _wait_for_admission(self, key: str) -> QueueItem:
        future = asyncio.get_running_loop().create_future()
        self._admissions[key] = future
        self._ensure_pump()
        try:
            return await future
        finally:
            if self._admissions.get(key) is future:
                del self._admissions[key]

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.ensure_future(self._pump())

    async def _pump(self) -> None:
        """Release queued requests one at a time, honoring the queue's rate gate."""
        while not self.queue.is_empty():
            wait = self.queue.time_until_next()
            if wait > 0:
                await asyncio.sleep(wait)
                continue

            item = self.queue.dequeue()
            if item is None:
                continue
            waiter = self._admissions.get(item.id)
            if waiter is not None and not waiter.done():
                waiter.set_result(item)

    def _reject_evicted(self, item: QueueItem) -> None:
        waiter = self._admissions.get(item.id)
        if waiter is not None and not waiter.done():
            waiter.set_exception(AnalysisRejected(f"Request for {item.id} dropped from a full queue"))

    async def _persist(self) -> None:
        if self.local_store is None:
            return
        try:
            await self.cache.save(self.local_store)
        except Exception as e:
            logger.warning("Could not persist analysis cache: %s", e)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    async def clear_cache(self, domain: Optional[str] = None) -> int:
        """Clear cached results for one domain, or everything when no domain is given."""
        cleared = self.cache.evict_domain(domain) if domain else self.cache.evict_all()
        await self._persist()
        return cleared

    async def sweep_expired(self) -> int:
        cleared = self.cache.sweep_expired()
        if cleared:
            await self._persist()
        return cleared

    async def test_connection(self) -> ConnectionReport:
        return await self.llm_client.test_connection()

    async def close(self) -> None:
        """Stop the admission pump and any in-flight analyses."""
        tasks = [flight.task for flight in self._in_flight.values()]
        if self._pump_task is not None:
            tasks.append(self._pump_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.queue.clear()


async def sweep_periodically(
    service: AnalysisService,
    interval: Optional[float],
    stop_event: asyncio.Event,
) -> None:
    """Sweep expired cache entries every ``interval`` seconds until stopped.

    ``None`` uses the configured ``cache.sweep_interval``.
    """
    if interval is None:
        interval = service.settings.cache.sweep_interval
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            cleared = await service.sweep_expired()
            if cleared:
                logger.info("Cleared %d expired cache entries", cleared)
