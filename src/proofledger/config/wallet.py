"""Wallet and issuer configuration values."""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Final, Literal

from proofledger.domain.model.enums import SelectionStrategy

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_UNIT: Final[str] = "usd"
ISSUER_TIMEOUT_SECONDS: Final[float] = 10.0
HISTORY_KEY_BYTES: Final[int] = 32

StorageBackend = Literal["json", "sqlite"]


@dataclass(frozen=True)
class WalletConfig:
    """Holds the issuer binding and local wallet preferences."""

    issuer_url: str
    unit: str
    selector: SelectionStrategy
    resilience: ResilienceConfig
    storage_backend: StorageBackend = "json"
    history_key: bytes | None = None


def issuer_resilience_config(issuer_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="issuer",
        base_url=issuer_url.rstrip("/"),
        timeout_seconds=ISSUER_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        headers=(("Accept", "application/json"),),
    )


def _parse_selector(value: str | None) -> SelectionStrategy:
    if value is None:
        return SelectionStrategy.SMALLEST_FIRST
    try:
        return SelectionStrategy(value.replace("-", "_").lower())
    except ValueError as exc:
        known = ", ".join(strategy.value for strategy in SelectionStrategy)
        raise ConfigurationError(
            f"Unknown selector {value!r}; expected one of: {known}",
            variable="PROOFLEDGER_SELECTOR",
        ) from exc


def _parse_backend(value: str | None) -> StorageBackend:
    if value is None or value == "json":
        return "json"
    if value == "sqlite":
        return "sqlite"
    raise ConfigurationError(
        f"Unknown storage backend {value!r}; expected 'json' or 'sqlite'",
        variable="PROOFLEDGER_STORAGE",
    )


def _parse_history_key(value: str | None) -> bytes | None:
    if value is None:
        return None
    try:
        key = bytes.fromhex(value)
    except (ValueError, binascii.Error) as exc:
        raise ConfigurationError(
            "PROOFLEDGER_HISTORY_KEY must be hex encoded", variable="PROOFLEDGER_HISTORY_KEY"
        ) from exc
    if len(key) != HISTORY_KEY_BYTES:
        raise ConfigurationError(
            f"PROOFLEDGER_HISTORY_KEY must decode to {HISTORY_KEY_BYTES} bytes, got {len(key)}",
            variable="PROOFLEDGER_HISTORY_KEY",
        )
    return key


def get_wallet_config(*, resilience: ResilienceConfig | None = None) -> WalletConfig:
    values = require_env_vars(("PROOFLEDGER_ISSUER_URL",))
    issuer_url = values["PROOFLEDGER_ISSUER_URL"].rstrip("/")
    return WalletConfig(
        issuer_url=issuer_url,
        unit=optional_env_var("PROOFLEDGER_UNIT", DEFAULT_UNIT) or DEFAULT_UNIT,
        selector=_parse_selector(optional_env_var("PROOFLEDGER_SELECTOR")),
        resilience=resilience or issuer_resilience_config(issuer_url),
        storage_backend=_parse_backend(optional_env_var("PROOFLEDGER_STORAGE")),
        history_key=_parse_history_key(optional_env_var("PROOFLEDGER_HISTORY_KEY")),
    )
