"""Retry, rate-limit and timeout settings for outbound HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

import httpx
from httpx_retries import Retry

IDEMPOTENT_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD", "OPTIONS"})
TRANSIENT_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS: Final[tuple[type[httpx.HTTPError], ...]] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """How often and how patiently a client retries a failed request.

    POST is retried by default: checkstate is a read that happens to use POST. Clients that
    mutate issuer state must pass their own policy without it.
    """

    total: int = 3
    backoff_factor: float = 0.5
    backoff_jitter: float = 1.0
    max_backoff_wait: float = 30.0
    retry_methods: frozenset[str] = IDEMPOTENT_METHODS | {"POST"}
    retry_statuses: frozenset[int] = TRANSIENT_STATUSES

    def build(self) -> Retry:
        return Retry(
            total=self.total,
            backoff_factor=self.backoff_factor,
            backoff_jitter=self.backoff_jitter,
            max_backoff_wait=self.max_backoff_wait,
            respect_retry_after_header=True,
            allowed_methods=sorted(self.retry_methods),
            status_forcelist=sorted(self.retry_statuses),
            retry_on_exceptions=TRANSIENT_ERRORS,
        )


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    """Everything needed to build one client for one upstream service."""

    name: str
    base_url: str | None = None
    timeout_seconds: float = 10.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    headers: tuple[tuple[str, str], ...] = ()
