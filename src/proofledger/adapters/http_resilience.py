"""Async HTTP client that retries transient failures and paces outgoing calls."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import RetryTransport

if TYPE_CHECKING:
    from types import TracebackType

    from proofledger.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class ResilientClient:
    """Wrap :class:`httpx.AsyncClient` with the retry and rate-limit settings of one service.

    ``transport`` replaces the network layer underneath the retry transport, which is how
    tests plug in :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.headers),
            transport=RetryTransport(transport=transport, retry=config.retry.build()),
            event_hooks={"response": [self._log_response]},
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._limiter is None:
            return await self._client.request(method, url, **kwargs)
        async with self._limiter:
            return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def _log_response(self, response: httpx.Response) -> None:
        log.debug(
            "%s %s %s -> %d",
            self.config.name,
            response.request.method,
            response.request.url,
            response.status_code,
        )
