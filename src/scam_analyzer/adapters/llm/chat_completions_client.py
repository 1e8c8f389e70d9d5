"""Chat-completions API client with retries, backoff and cancellation."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional

import httpx

from scam_analyzer.adapters.llm.envelope import (
    ContentReply,
    ProviderError,
    ReasoningOnly,
    Truncated,
    read_envelope,
)
from scam_analyzer.config import Settings
from scam_analyzer.core import AnalysisRequest, AnalysisResult, ConnectionReport, LLMClient
from scam_analyzer.core.backoff import RetryConfig, backoff_delay, cancelled_error, wait_or_cancel
from scam_analyzer.core.errors import (
    ApiError,
    ApiErrorKind,
    classify_exception,
    classify_response,
    looks_like_html,
)
from scam_analyzer.core.redaction import redact_api_keys
from scam_analyzer.core.response_parser import parse_analysis_result

logger = logging.getLogger(__name__)


def _headers_of(response: httpx.Response) -> dict[str, str]:
    return {key.lower(): value for key, value in response.headers.items()}


class ChatCompletionsClient(LLMClient):
    """OpenAI-compatible chat-completions client implementation."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.endpoint = settings.api.endpoint
        self.api_key = settings.api.api_key
        self.model = settings.api.model
        self.temperature = settings.api.temperature
        self.max_tokens = settings.api.max_tokens
        self.timeout = settings.api.timeout
        self.test_timeout = settings.api.test_timeout
        self.retry_config = settings.retry_config

    async def analyze_page(
        self,
        request: AnalysisRequest,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisResult:
        """Analyze a page for scam indicators.

        Retryable failures are retried up to ``retry_config.max_retries``
        times with backoff; the timeout applies to each attempt separately.

        Raises:
            ApiError: once retries are exhausted or on a non-retryable kind.
        """
        timeout = self.timeout if timeout is None else timeout
        retry_config = retry_config or self.retry_config
        payload = self._build_payload(request)
        attempts = retry_config.max_retries + 1
        last_error: Optional[ApiError] = None

        for attempt in range(attempts):
            try:
                response = await self._post(payload, timeout, cancel_event)
            except ApiError:
                raise
            except (httpx.RequestError, asyncio.TimeoutError) as e:
                error = classify_exception(e, timeout)
            else:
                if 200 <= response.status_code < 300:
                    return self._read_result(response)
                error = classify_response(
                    response.status_code,
                    _headers_of(response),
                    response.text,
                    response.reason_phrase,
                )

            message = redact_api_keys(error.message)
            if not error.retryable:
                logger.warning("API request failed [%s]: %s", error.kind.value, message)
                raise error

            last_error = error
            if attempt + 1 >= attempts:
                break

            delay = backoff_delay(attempt, retry_config, error.retry_after)
            logger.info(
                "API request failed (attempt %d/%d) [%s], retrying in %.1fs: %s",
                attempt + 1, attempts, error.kind.value, delay, message,
            )
            await wait_or_cancel(delay, cancel_event)

        if last_error is None:
            raise ApiError("Unknown error occurred", ApiErrorKind.UNKNOWN)
        logger.warning(
            "API request failed after %d attempts [%s]: %s",
            attempts, last_error.kind.value, redact_api_keys(last_error.message),
        )
        raise last_error

    async def test_connection(self) -> ConnectionReport:
        """Send one minimal request and report success and latency."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": self.settings.prompts.connection_test}],
            "max_tokens": 10,
        }
        started = time.monotonic()

        try:
            response = await self._post(payload, self.test_timeout, None)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return ConnectionReport(
                success=False,
                message=f"Connection timed out ({self.test_timeout:g}s)",
                latency_ms=self._elapsed_ms(started),
            )
        except httpx.RequestError as e:
            return ConnectionReport(
                success=False,
                message=redact_api_keys(classify_exception(e).message),
                latency_ms=self._elapsed_ms(started),
            )

        latency_ms = self._elapsed_ms(started)
        if not 200 <= response.status_code < 300:
            error = classify_response(
                response.status_code, _headers_of(response), response.text, response.reason_phrase
            )
            return ConnectionReport(success=False, message=redact_api_keys(error.message), latency_ms=latency_ms)

        return ConnectionReport(success=True, message="Connection successful", latency_ms=latency_ms)

    async def _post(
        self,
        payload: dict[str, Any],
        timeout: float,
        cancel_event: Optional[asyncio.Event],
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout) as client:
            call = client.post(
                self.endpoint,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            return await self._run_cancellable(call, timeout, cancel_event)

    async def _run_cancellable(
        self,
        call: Awaitable[httpx.Response],
        timeout: float,
        cancel_event: Optional[asyncio.Event],
    ) -> httpx.Response:
        """Await ``call`` until it finishes, times out or is cancelled."""
        if cancel_event is None:
            return await asyncio.wait_for(call, timeout=timeout)
        if cancel_event.is_set():
            if asyncio.iscoroutine(call):
                call.close()
            raise cancelled_error()

        task = asyncio.ensure_future(call)
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, httpx.HTTPError):
            pass
        if cancel_event.is_set():
            raise cancelled_error()
        raise asyncio.TimeoutError()

    def _read_result(self, response: httpx.Response) -> AnalysisResult:
        """Validate a 2xx response and parse the model's answer."""
        content_type = _headers_of(response).get("content-type", "")
        if "application/json" not in content_type:
            if looks_like_html(response.text):
                raise ApiError(
                    "API returned HTML instead of JSON. Check your API endpoint URL.",
                    ApiErrorKind.INVALID_RESPONSE,
                    status_code=response.status_code,
                    retryable=False,
                )
            raise ApiError(
                f"API returned unexpected content type: {content_type or 'none'}",
                ApiErrorKind.INVALID_RESPONSE,
                status_code=response.status_code,
                retryable=False,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                f"API returned malformed JSON: {e}",
                ApiErrorKind.INVALID_RESPONSE,
                status_code=response.status_code,
                retryable=False,
            ) from e

        envelope = read_envelope(data)
        logger.debug("API response envelope: %s", type(envelope).__name__)

        if isinstance(envelope, ContentReply):
            return parse_analysis_result(envelope.content)

        if isinstance(envelope, ProviderError):
            message = f"API error: {envelope.message}"
        elif isinstance(envelope, Truncated):
            message = (
                "Response was truncated at the max_tokens limit before any content was "
                f"produced (max_tokens={self.max_tokens}). Increase max_tokens or use another model."
            )
        elif isinstance(envelope, ReasoningOnly):
            message = (
                f"Model '{self.model}' returned only reasoning output and no content. "
                "Reasoning-only models are not supported; choose a chat model."
            )
        else:
            message = (
                "No content in API response. This usually means: wrong model name, "
                f"or API key lacks permissions. Response had: {', '.join(envelope.keys) or 'empty object'}"
            )

        raise ApiError(
            redact_api_keys(message),
            ApiErrorKind.INVALID_RESPONSE,
            status_code=response.status_code,
            retryable=False,
        )

    def _build_payload(self, request: AnalysisRequest) -> dict[str, Any]:
        prompts = self.settings.prompts.analysis
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompts.get("system", "")},
                {"role": "user", "content": self._build_prompt(request)},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _build_prompt(self, request: AnalysisRequest) -> str:
        """Fill the analysis template with the page description."""
        template = self.settings.prompts.analysis.get("user", "")

        suspicious_links_info = ""
        if request.suspicious_links:
            suspicious_links_info = "\nSuspicious Links Found: " + "; ".join(
                f"{link.href} (Patterns: {', '.join(link.patterns)})"
                for link in request.suspicious_links
            )

        url_patterns_info = ""
        if request.url_patterns:
            url_patterns_info = f"\nURL Warning Patterns: {', '.join(request.url_patterns)}"

        external_links_info = ""
        if request.external_link_count is not None:
            external_links_info = f"\nExternal Links Count: {request.external_link_count}"

        forms = " | ".join(
            f"Action: {form.action or 'N/A'}, Method: {form.method or 'N/A'}, "
            f"Fields: {', '.join(form.fields)}{' [SENSITIVE]' if form.has_sensitive_fields else ''}"
            for form in request.forms
        ) or "None"

        links = ", ".join(
            f"{link.text or 'N/A'} ({link.href}){' [EXT]' if link.is_external else ''}"
            for link in request.links[:5]
        ) or "None"

        return template.format(
            url=request.url,
            domain=request.domain or "N/A",
            title=request.title,
            meta_description=request.meta_description or "N/A",
            meta_keywords=request.meta_keywords or "N/A",
            url_patterns_info=url_patterns_info,
            external_links_info=external_links_info,
            headings=", ".join(request.headings[:10]) or "None",
            links=links,
            suspicious_links_info=suspicious_links_info,
            forms=forms,
            body_text=request.body_text[:1000] or "No visible text",
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
