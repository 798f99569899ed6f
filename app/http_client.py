"""Resilient HTTP client wrapper for every outbound integration call.

Features:
  - Per-attempt deadline (``timeout_ms``), cancelled once the attempt settles
  - Exponential backoff on retryable statuses and network errors
  - Non-retryable responses (e.g. 4xx) returned as-is, never raised
  - ``RequestClient`` binds one retry policy per integration module
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, FrozenSet, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_RETRY_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})


class RetryConfig(BaseModel):
    """Retry policy.  ``max_retries=3`` means up to 4 attempts in total."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(3, ge=0)
    initial_delay_ms: float = Field(100, ge=0)
    timeout_ms: float = Field(30_000, gt=0)
    retry_status_codes: FrozenSet[int] = DEFAULT_RETRY_STATUS_CODES
    retry_on_network_error: bool = True

    def merge(self, **overrides: Any) -> RetryConfig:
        """Return a copy with *overrides* applied (validated)."""
        return RetryConfig.model_validate({**self.model_dump(), **overrides})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class UpstreamError(Exception):
    """Base class for failures of an outbound call."""


class UpstreamStatusError(UpstreamError):
    """Raised by ``request_json`` when the final response is not 2xx."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class UpstreamTimeoutError(UpstreamError):
    """An attempt did not settle within ``timeout_ms``."""

    def __init__(self, url: str, timeout_ms: float):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Request to {_strip_query(url)} timed out after {timeout_ms:.0f}ms")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def request(
    method: str,
    url: str,
    *,
    config: Optional[RetryConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request with timeout and retry logic.

    Parameters
    ----------
    method : str
        HTTP method (GET, POST, …).
    url : str
        Absolute URL.
    config : RetryConfig
        Retry policy; defaults to ``RetryConfig()``.
    client : httpx.AsyncClient
        Client to send through.  When omitted a client is opened for the
        duration of the call.
    **kwargs
        Forwarded to ``httpx.AsyncClient.request`` (headers, params, data, …).

    Returns
    -------
    httpx.Response
        The first non-retryable response, or the last response once retries
        are exhausted (which may still be an error status).

    Raises
    ------
    UpstreamTimeoutError
        An attempt exceeded ``timeout_ms``.
    httpx.TransportError
        Network failure with retries exhausted or disabled.
    """
    config = config or RetryConfig()
    if client is not None:
        return await _request_with_retry(client, method, url, config, kwargs)

    # The per-attempt deadline below is the only timeout applied.
    async with httpx.AsyncClient(timeout=None) as owned:
        return await _request_with_retry(owned, method, url, config, kwargs)


async def request_json(
    method: str,
    url: str,
    *,
    config: Optional[RetryConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> Any:
    """Like ``request`` but parse the body; a final non-2xx status raises."""
    resp = await request(method, url, config=config, client=client, **kwargs)
    if not resp.is_success:
        raise UpstreamStatusError(resp.status_code, resp.reason_phrase)
    return resp.json()


class RequestClient:
    """A fixed retry policy shared by all calls of one integration module.

    Per-call ``overrides`` are merged over the bound configuration.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or RetryConfig()
        self._client = client

    def _resolve(self, overrides: Optional[dict]) -> RetryConfig:
        return self.config.merge(**overrides) if overrides else self.config

    async def request(
        self,
        method: str,
        url: str,
        *,
        overrides: Optional[dict] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        return await request(
            method, url, config=self._resolve(overrides), client=self._client, **kwargs
        )

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        overrides: Optional[dict] = None,
        **kwargs: Any,
    ) -> Any:
        return await request_json(
            method, url, config=self._resolve(overrides), client=self._client, **kwargs
        )


def create_client(*, client: Optional[httpx.AsyncClient] = None, **config: Any) -> RequestClient:
    """Factory: ``create_client(max_retries=2, timeout_ms=15_000)``."""
    return RequestClient(RetryConfig(**config), client=client)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------

async def _request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    config: RetryConfig,
    kwargs: dict,
) -> httpx.Response:
    target = _strip_query(url)
    attempt = 0
    while True:
        retries_left = attempt < config.max_retries

        try:
            resp = await _attempt(client, method, url, config.timeout_ms, kwargs)
        except httpx.TransportError as exc:
            if not config.retry_on_network_error or not retries_left:
                raise
            logger.warning(
                "Network error on attempt %d for %s %s: %s", attempt + 1, method, target, exc
            )
            await _backoff_sleep(config.initial_delay_ms, attempt)
            attempt += 1
            continue

        # ── Not retryable → hand back whatever we got ──────────────
        if resp.status_code not in config.retry_status_codes:
            return resp

        # ── Retryable but out of attempts → last response ──────────
        if not retries_left:
            logger.warning(
                "Status %d on %s %s after %d attempts, giving up",
                resp.status_code, method, target, attempt + 1,
            )
            return resp

        logger.warning(
            "Status %d on %s %s (attempt %d), retrying",
            resp.status_code, method, target, attempt + 1,
        )
        await _backoff_sleep(config.initial_delay_ms, attempt)
        attempt += 1


async def _attempt(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout_ms: float,
    kwargs: dict,
) -> httpx.Response:
    """One attempt under a deadline; expiry cancels the in-flight request."""
    try:
        return await asyncio.wait_for(
            client.request(method, url, **kwargs), timeout=timeout_ms / 1000
        )
    except asyncio.TimeoutError as exc:
        raise UpstreamTimeoutError(url, timeout_ms) from exc


async def _backoff_sleep(initial_delay_ms: float, attempt: int) -> None:
    """Exponential backoff: ``initial_delay_ms * 2**attempt`` (zero-indexed)."""
    delay_ms = initial_delay_ms * (2 ** attempt)
    logger.debug("Backoff sleep %.0fms (attempt %d)", delay_ms, attempt + 1)
    await asyncio.sleep(delay_ms / 1000)


def _strip_query(url: str) -> str:
    # Query strings can carry OAuth signatures; keep them out of logs.
    return url.split("?", 1)[0]
