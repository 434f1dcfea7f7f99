"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import AbstractSet, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
RATE_LIMITED_STATUS_CODES = frozenset({429})


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        statuses: AbstractSet[int] = RETRYABLE_STATUS_CODES,
        retry_transport_errors: bool = True,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.statuses = frozenset(statuses)
        self.retry_transport_errors = retry_transport_errors

    def non_idempotent(self) -> "RetryConfig":
        """
        Same attempts and backoff, but only retry responses that prove the
        request was not acted on (rate limiting).

        A 5xx or a dropped connection may arrive after the provider already
        performed the write, so those are returned or raised immediately.
        """
        return RetryConfig(
            attempts=self.attempts,
            backoff_seconds=self.backoff_seconds,
            statuses=RATE_LIMITED_STATUS_CODES,
            retry_transport_errors=False,
        )


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """
    Call ``func`` until it yields a non-retryable response.

    By default transport failures and 429/5xx responses are retried with linear
    backoff; ``retry_config`` narrows that policy. The last response is
    returned as-is once attempts run out so callers can inspect the provider's
    error body; only transport errors propagate.
    """
    config = retry_config or RetryConfig()

    for attempt in range(1, config.attempts + 1):
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            if not config.retry_transport_errors or attempt >= config.attempts:
                raise
            logger.warning("HTTP transport error (attempt %s): %s", attempt, exc)
        else:
            if (
                response.status_code not in config.statuses
                or attempt >= config.attempts
            ):
                return response
            logger.warning(
                "Retryable HTTP status %s from %s (attempt %s)",
                response.status_code,
                response.request.url,
                attempt,
            )
        await asyncio.sleep(config.backoff_seconds * attempt)

    raise RuntimeError("Request failed without returning a response")  # pragma: no cover


__all__ = [
    "RATE_LIMITED_STATUS_CODES",
    "RETRYABLE_STATUS_CODES",
    "RetryConfig",
    "request_with_retry",
]
