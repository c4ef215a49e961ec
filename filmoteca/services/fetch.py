"""Bounded-time, retrying HTTP calls shared by every provider client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from ..errors import FetchError, FetchTimeoutError, HttpError, NetworkError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class FetchPolicy:
    """Per-call timeout plus a linear backoff retry budget."""

    timeout: float = 10.0
    max_retries: int = 2
    backoff_base: float = 0.5

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("Fetch timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("Fetch retries cannot be negative")

    def backoff(self, attempt: int) -> float:
        return self.backoff_base * attempt


async def fetch(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    policy: FetchPolicy,
    sleep: Sleep = asyncio.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Perform ``method url`` retrying transient failures.

    5xx and 429 responses, timeouts and transport errors are retried up to
    ``policy.max_retries`` times; any other 4xx raises at once. When the budget
    is exhausted the last error is raised.
    """

    last_error: FetchError | None = None
    for attempt in range(policy.max_retries + 1):
        if attempt:
            delay = policy.backoff(attempt)
            logger.info(
                "Retrying %s %s (attempt %s of %s) in %.2fs after %s",
                method,
                url,
                attempt,
                policy.max_retries,
                delay,
                last_error,
            )
            await sleep(delay)

        try:
            response = await asyncio.wait_for(
                client.request(method, url, timeout=policy.timeout, **kwargs),
                timeout=policy.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            last_error = FetchTimeoutError(
                f"{method} {url} timed out after {policy.timeout}s", url=url
            )
            last_error.__cause__ = exc
            continue
        except httpx.TransportError as exc:
            last_error = NetworkError(f"{method} {url} failed: {exc}", url=url)
            last_error.__cause__ = exc
            continue

        if response.status_code < 400:
            return response
        error = HttpError(response.status_code, url=url, body=response.text)
        if not error.retryable:
            raise error
        last_error = error

    if last_error is None:
        raise FetchError(f"{method} {url} was never attempted", url=url)
    logger.warning(
        "Giving up on %s %s after %s retries: %s",
        method,
        url,
        policy.max_retries,
        last_error,
    )
    raise last_error
