"""
Web Crawler Module
==================

Provides HTTP fetching with robots.txt compliance, per-source rate
limiting and bounded retries with exponential backoff.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

from barnehage_tracker.ingestion.errors import FetchError

if TYPE_CHECKING:
    from barnehage_tracker.ingestion.registry import GlobalConfig, SourceConfig

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of fetching a URL."""

    url: str
    content: bytes
    content_hash: str
    mime_type: str
    status_code: int
    fetched_at: datetime
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return self.error is None and 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class TokenBucket:
    """
    Token bucket rate limiter for per-source rate limiting.

    Allows bursting up to burst_limit requests, then enforces
    the steady-state rate of requests_per_second.
    """

    def __init__(self, requests_per_second: float, burst_limit: int) -> None:
        self.requests_per_second = requests_per_second
        self.burst_limit = burst_limit
        self.tokens = float(burst_limit)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.last_update = now

            self.tokens = min(
                self.burst_limit, self.tokens + elapsed * self.requests_per_second
            )

            if self.tokens < 1.0:
                wait_time = (1.0 - self.tokens) / self.requests_per_second
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
                self.last_update = time.monotonic()
            else:
                self.tokens -= 1.0


class RobotsChecker:
    """
    Robots.txt parser and cache.

    Caches parsed robots.txt files per domain and checks
    if URLs are allowed for crawling.
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.transport = transport
        self._cache: dict[str, RobotFileParser | None] = {}
        self._lock = asyncio.Lock()

    async def _fetch_robots(self, domain: str, scheme: str = "https") -> RobotFileParser | None:
        robots_url = f"{scheme}://{domain}/robots.txt"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    robots_url,
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True,
                )
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch robots.txt for {domain}: {e}")
            return None

        if response.status_code != 200:
            # No robots.txt - allow all
            return None

        parser = RobotFileParser()
        parser.parse(response.text.splitlines())
        return parser

    async def is_allowed(self, url: str) -> bool:
        """
        Check if a URL is allowed by robots.txt.

        Args:
            url: Full URL to check

        Returns:
            True if allowed, False if disallowed
        """
        parsed = urlparse(url)
        domain = parsed.netloc
        scheme = parsed.scheme or "https"

        async with self._lock:
            if domain not in self._cache:
                self._cache[domain] = await self._fetch_robots(domain, scheme)

        parser = self._cache.get(domain)
        if parser is None:
            return True

        return parser.can_fetch(self.user_agent, url)


class Crawler:
    """
    HTTP fetcher with rate limiting and robots.txt compliance.

    Features:
    - Per-source rate limiting with token bucket algorithm
    - Robots.txt compliance
    - Content hashing for snapshot deduplication
    - Bounded retries with exponential backoff
    """

    def __init__(
        self,
        user_agent: str = "BarnehageTracker/0.1",
        timeout: float = 30.0,
        max_retries: int = 3,
        respect_robots: bool = True,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.respect_robots = respect_robots
        self.backoff_base = backoff_base
        self.transport = transport

        self._rate_limiters: dict[str, TokenBucket] = {}
        self._robots_checker = (
            RobotsChecker(user_agent, transport=transport) if respect_robots else None
        )

    @classmethod
    def from_config(
        cls,
        config: GlobalConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Crawler:
        """Create a crawler from the global configuration section."""
        return cls(
            user_agent=config.user_agent,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            respect_robots=config.respect_robots,
            transport=transport,
        )

    def _get_rate_limiter(self, source: SourceConfig) -> TokenBucket:
        if source.name not in self._rate_limiters:
            self._rate_limiters[source.name] = TokenBucket(
                requests_per_second=source.rate_limit.requests_per_second,
                burst_limit=source.rate_limit.burst_limit,
            )
        return self._rate_limiters[source.name]

    @staticmethod
    def compute_hash(content: bytes) -> str:
        """
        Compute SHA-256 hash of content.

        Args:
            content: Raw bytes to hash

        Returns:
            Hex-encoded SHA-256 hash
        """
        return hashlib.sha256(content).hexdigest()

    def _failed(self, url: str, fetched_at: datetime, error: str, status_code: int = 0) -> FetchResult:
        return FetchResult(
            url=url,
            content=b"",
            content_hash="",
            mime_type="",
            status_code=status_code,
            fetched_at=fetched_at,
            error=error,
        )

    async def fetch(self, url: str, source: SourceConfig) -> FetchResult:
        """
        Fetch a URL with rate limiting and robots.txt compliance.

        Args:
            url: URL to fetch
            source: Source configuration for rate limiting and URL filtering

        Returns:
            FetchResult with content or error
        """
        fetched_at = datetime.now(UTC)

        if not source.is_url_allowed(url):
            return self._failed(
                url, fetched_at, f"URL not allowed by source '{source.name}' configuration"
            )

        if self._robots_checker and not await self._robots_checker.is_allowed(url):
            return self._failed(url, fetched_at, "Disallowed by robots.txt")

        rate_limiter = self._get_rate_limiter(source)

        last_error: str | None = None
        for attempt in range(self.max_retries):
            await rate_limiter.acquire()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.get(
                        url,
                        headers={"User-Agent": self.user_agent},
                        follow_redirects=True,
                    )
            except httpx.TimeoutException:
                last_error = f"Timeout after {self.timeout}s"
                logger.warning(f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries})")
            except httpx.HTTPError as e:
                last_error = str(e)
                logger.warning(
                    f"HTTP error fetching {url}: {e} (attempt {attempt + 1}/{self.max_retries})"
                )
            else:
                if response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        f"Server error fetching {url}: {response.status_code} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                else:
                    content = response.content
                    mime_type = response.headers.get("content-type", "").split(";")[0].strip()
                    result = FetchResult(
                        url=url,
                        content=content,
                        content_hash=self.compute_hash(content),
                        mime_type=mime_type,
                        status_code=response.status_code,
                        fetched_at=fetched_at,
                    )
                    if not result.success:
                        result.error = f"HTTP {response.status_code}"
                    return result

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_base * 2**attempt)

        return self._failed(url, fetched_at, last_error or "Unknown error")

    async def fetch_text(self, url: str, source: SourceConfig) -> FetchResult:
        """
        Fetch a URL, raising when no usable response was obtained.

        Raises:
            FetchError: If the fetch failed after all retries
        """
        result = await self.fetch(url, source)
        if not result.success:
            raise FetchError(url, result.error or f"HTTP {result.status_code}")
        return result

    async def fetch_json(self, url: str, source: SourceConfig) -> Any:
        """
        Fetch and decode a JSON resource.

        Raises:
            FetchError: If the fetch failed or the body is not valid JSON
        """
        result = await self.fetch_text(url, source)
        try:
            return json.loads(result.content)
        except ValueError as e:
            raise FetchError(url, f"Invalid JSON: {e}") from e

    async def fetch_batch(
        self,
        urls: list[str],
        source: SourceConfig,
        concurrency: int = 5,
    ) -> list[FetchResult]:
        """
        Fetch multiple URLs with controlled concurrency.

        Returns:
            List of FetchResults in the same order as input URLs
        """
        semaphore = asyncio.Semaphore(concurrency)

        async def fetch_with_semaphore(url: str) -> FetchResult:
            async with semaphore:
                return await self.fetch(url, source)

        return await asyncio.gather(*(fetch_with_semaphore(url) for url in urls))
