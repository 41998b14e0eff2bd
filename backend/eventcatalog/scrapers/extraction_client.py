"""Firecrawl extraction API client.

Submits asynchronous extraction jobs, polls them to completion and
returns raw event records. A second path scrapes a listing page as
markdown and runs the text-pattern parser over it, for platforms whose
structured extraction is unreliable. The client knows nothing about
event semantics beyond the output schema it asks for.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog

from eventcatalog.config import settings
from eventcatalog.core.exceptions import (
    ConfigurationError,
    ExtractionError,
    ExtractionTimeoutError,
)
from eventcatalog.scrapers.base import ExtractResult, RawExtractedEvent
from eventcatalog.scrapers.platforms import (
    EVENT_EXTRACTION_SCHEMA,
    EVENTS_ARRAY_INSTRUCTION,
    ParsingStrategy,
    PlatformConfig,
)
from eventcatalog.scrapers.utils.markdown_parser import parse_listing_markdown
from eventcatalog.scrapers.utils.retry import RetryPolicy, exponential_backoff

logger = structlog.get_logger(__name__)


def is_retryable_extraction_error(exc: BaseException) -> bool:
    """Retry predicate: only extraction errors tagged retryable."""
    return isinstance(exc, ExtractionError) and exc.retryable


def default_extraction_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.EXTRACT_MAX_ATTEMPTS,
        wait=exponential_backoff(settings.EXTRACT_BACKOFF_BASE_SECONDS),
        retryable=is_retryable_extraction_error,
        name="extraction",
    )


def _error_text(response: httpx.Response) -> str:
    try:
        return response.text or "Unknown error"
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return "Unknown error"


def _raise_for_status(response: httpx.Response, context: str) -> None:
    """Translate an HTTP error response into a tagged ExtractionError.

    429 and 5xx are retryable; 402 (quota exhausted) and other 4xx are not.
    """
    if response.is_success:
        return

    status = response.status_code
    text = _error_text(response)
    if status == 429:
        raise ExtractionError(f"Rate limited: {text}", status_code=429, retryable=True)
    if status == 402:
        raise ExtractionError(f"API quota exceeded: {text}", status_code=402, retryable=False)
    raise ExtractionError(f"{context}: {text}", status_code=status, retryable=status >= 500)


def _json(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        raise ExtractionError("Malformed response from extraction service", status_code=502, retryable=False)
    if not isinstance(payload, dict):
        raise ExtractionError("Malformed response from extraction service", status_code=502, retryable=False)
    return payload


def _events_from(data: Any) -> List[RawExtractedEvent]:
    if not isinstance(data, dict):
        return []
    items = data.get("events")
    if not isinstance(items, list):
        return []
    return [RawExtractedEvent.from_payload(item) for item in items]


class ExtractionClient:
    """Async client for the Firecrawl extraction service.

    Every failure surfaces as an ExtractionError tagged ``retryable``;
    a missing credential is a ConfigurationError raised before any I/O.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        default_timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the extraction client.

        Args:
            api_key: Service credential (default: settings.FIRECRAWL_API_KEY)
            base_url: Service base URL (default: settings.FIRECRAWL_API_URL)
            poll_interval: Seconds between job polls
            default_timeout: Seconds before a job is abandoned
            retry_policy: Policy for per-platform attempts
            http_client: Injected httpx client (created per call when None)
            sleep: Awaitable used between polls
        """
        self.api_key = settings.FIRECRAWL_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.FIRECRAWL_API_URL).rstrip("/")
        self.poll_interval = settings.EXTRACT_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.default_timeout = settings.EXTRACT_TIMEOUT_SECONDS if default_timeout is None else default_timeout
        self.retry_policy = retry_policy or default_extraction_retry_policy()
        self.http_client = http_client
        self._sleep = sleep
        self._request_timeout = 30.0
        self.logger = logger.bind(service="extraction_client")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError("FIRECRAWL_API_KEY not configured")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            if self.http_client is not None:
                return await self.http_client.request(method, url, headers=self._headers(), **kwargs)
            async with httpx.AsyncClient(timeout=self._request_timeout) as client:
                return await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise ExtractionError(f"Request timed out: {e}", status_code=408, retryable=True) from e
        except httpx.TransportError as e:
            raise ExtractionError(f"Transport error: {e}", status_code=503, retryable=True) from e

    async def extract(
        self,
        urls: List[str],
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ExtractResult:
        """Run one extraction job and wait for its result.

        Args:
            urls: Target page URLs
            prompt: Extraction instructions
            schema: Expected output schema (default: EVENT_EXTRACTION_SCHEMA)
            timeout: Seconds to wait for the job (default: client default)

        Returns:
            ExtractResult with the extracted raw events

        Raises:
            ConfigurationError: If the credential is missing
            ExtractionError: On service failure (tagged retryable or not)
            ExtractionTimeoutError: If the job did not finish in time
        """
        self._require_api_key()
        timeout = self.default_timeout if timeout is None else timeout

        self.logger.info("extraction_job_starting", url=urls[0] if urls else None)
        response = await self._request(
            "POST",
            "/extract",
            json={
                "urls": urls,
                "prompt": f"{prompt}\n\n{EVENTS_ARRAY_INSTRUCTION}",
                "schema": schema or EVENT_EXTRACTION_SCHEMA,
            },
        )
        _raise_for_status(response, "Extraction API error")

        job = _json(response)
        job_id = job.get("id")
        if not job.get("success") or not job_id:
            raise ExtractionError(
                f"Failed to start extraction: {job.get('error') or 'No job ID returned'}",
                status_code=502,
                retryable=False,
            )

        self.logger.info("extraction_job_started", job_id=job_id)
        return await self._poll_job(job_id, timeout)

    async def _poll_job(self, job_id: str, timeout: float) -> ExtractResult:
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            await self._sleep(self.poll_interval)

            try:
                response = await self._request("GET", f"/extract/{job_id}")
            except ExtractionError as e:
                self.logger.warning("extraction_poll_failed", job_id=job_id, error=e.message)
                continue

            if not response.is_success:
                self.logger.warning(
                    "extraction_poll_failed",
                    job_id=job_id,
                    status_code=response.status_code,
                    error=_error_text(response),
                )
                continue

            payload = _json(response)
            status = payload.get("status")

            if status == "completed":
                events = _events_from(payload.get("data"))
                self.logger.info("extraction_job_completed", job_id=job_id, count=len(events))
                return ExtractResult(events=events)

            if status == "failed":
                raise ExtractionError(
                    f"Extraction failed: {payload.get('error') or 'Unknown error'}",
                    status_code=500,
                    retryable=False,
                )

            self.logger.debug("extraction_job_pending", job_id=job_id, status=status or "processing")

        raise ExtractionTimeoutError(f"Extraction job {job_id} timed out after {timeout}s")

    async def scrape_markdown(self, url: str, base_url: str) -> ExtractResult:
        """Scrape a page as markdown and parse it into raw events.

        Args:
            url: Listing page URL
            base_url: Site root for absolutizing relative links

        Returns:
            ExtractResult with the parsed raw events
        """
        self._require_api_key()

        self.logger.info("markdown_scrape_starting", url=url)
        response = await self._request("POST", "/scrape", json={"url": url, "formats": ["markdown"]})
        _raise_for_status(response, "Scrape API error")

        payload = _json(response)
        data = payload.get("data")
        markdown = data.get("markdown") if isinstance(data, dict) else None
        if not isinstance(markdown, str) or not markdown:
            raise ExtractionError("No markdown content returned", status_code=502, retryable=True)

        events = parse_listing_markdown(markdown, base_url)
        self.logger.info("markdown_scrape_parsed", url=url, count=len(events))
        return ExtractResult(events=events)

    async def _extract_once(self, platform: PlatformConfig, timeout: Optional[float]) -> ExtractResult:
        if platform.parsing_strategy == ParsingStrategy.MARKDOWN:
            result = await self.scrape_markdown(platform.events_url, platform.base_url)
        else:
            result = await self.extract([platform.events_url], platform.extraction_prompt, timeout=timeout)

        if not result.events:
            # Often a transient site change; worth another attempt
            raise ExtractionError("No events found", status_code=204, retryable=True)
        return result

    async def extract_platform_events(
        self,
        platform: PlatformConfig,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ExtractResult:
        """Extract a platform's listing with bounded retries.

        Retryable errors (including zero events) back off exponentially
        between attempts; a non-retryable error short-circuits at once.

        Args:
            platform: Platform to extract
            max_retries: Attempt cap overriding the policy's
            timeout: Per-job timeout in seconds

        Returns:
            ExtractResult with at least one raw event

        Raises:
            ConfigurationError: If the credential is missing
            ExtractionError: The last error once attempts are exhausted
        """
        self._require_api_key()

        policy = self.retry_policy
        if max_retries is not None and max_retries != policy.max_attempts:
            policy = RetryPolicy(
                max_attempts=max_retries,
                wait=policy.wait,
                retryable=policy.retryable,
                sleep=policy.sleep,
                name=policy.name,
            )

        log = self.logger.bind(platform=platform.id.value)
        log.info("platform_extraction_starting", url=platform.events_url, strategy=platform.parsing_strategy.value)

        try:
            result = await policy.run(
                lambda: self._extract_once(platform, timeout),
                platform=platform.id.value,
            )
        except ExtractionError as e:
            log.error(
                "platform_extraction_failed",
                error=e.message,
                status_code=e.status_code,
                retryable=e.retryable,
            )
            raise

        log.info("platform_extraction_complete", count=len(result.events))
        return result
