"""HTTP client for the issuer's info and state endpoints."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx

from proofledger.adapters.http_resilience import ResilientClient
from proofledger.config.wallet import issuer_resilience_config
from proofledger.domain.errors import IssuerResponseError, TransportError
from proofledger.domain.model import IssuerInfo
from proofledger.domain.ports.issuer import IssuerInfoSource, StateChecker

from .schema import CheckStateRequest, CheckStateResponse, ErrorResponse, InfoResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from proofledger.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

CHECKSTATE_PATH: Final[str] = "v1/checkstate"
INFO_PATH: Final[str] = "v1/info"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = ErrorResponse.model_validate(response.json())
    except ValueError:
        return response.reason_phrase
    return payload.detail or response.reason_phrase


class HttpIssuerClient:
    """Batched proof state lookups against ``POST {issuer}/v1/checkstate``.

    Also reads the issuer's self-description from ``GET {issuer}/v1/info``.
    """

    __slots__ = ("client_factory", "issuer_url", "resilience")

    def __init__(
        self,
        issuer_url: str,
        *,
        resilience: ResilienceConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.issuer_url = issuer_url
        self.resilience: ResilienceConfig = resilience or issuer_resilience_config(issuer_url)
        self.client_factory = client_factory

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:
                log.warning("%s %s on %s failed: %s", method, path, self.issuer_url, exc)
                raise TransportError(f"Could not reach issuer {self.issuer_url}: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            log.warning("Issuer %s answered %d: %s", self.issuer_url, response.status_code, detail)
            raise TransportError(f"Issuer returned HTTP {response.status_code}: {detail}")
        return response

    async def check_state(self, ys: Sequence[str]) -> dict[str, str]:
        if not ys:
            return {}
        body = CheckStateRequest(ys=list(ys)).model_dump(by_alias=True)
        response = await self._send("POST", CHECKSTATE_PATH, json=body)

        try:
            parsed = CheckStateResponse.model_validate(response.json())
        except ValueError as exc:
            raise IssuerResponseError(f"Unexpected checkstate payload: {exc}") from exc

        log.debug("checkstate returned %d states for %d ids", len(parsed.states), len(ys))
        return {item.y: item.state for item in parsed.states}

    async def get_info(self) -> IssuerInfo:
        response = await self._send("GET", INFO_PATH)

        try:
            parsed = InfoResponse.model_validate(response.json())
        except ValueError as exc:
            raise IssuerResponseError(f"Unexpected info payload: {exc}") from exc

        keysets = (
            tuple(keyset.id for keyset in parsed.keysets) if parsed.keysets is not None else None
        )
        return IssuerInfo(name=parsed.name, version=parsed.version, keysets=keysets)


if TYPE_CHECKING:
    _checker_check: StateChecker = HttpIssuerClient("https://issuer.example")
    _info_check: IssuerInfoSource = HttpIssuerClient("https://issuer.example")
