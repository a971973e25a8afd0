"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import StorageConfig, get_storage_config
from .wallet import WalletConfig, get_wallet_config, issuer_resilience_config

__all__ = [
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WalletConfig",
    "configure_logging",
    "get_storage_config",
    "get_wallet_config",
    "issuer_resilience_config",
    "optional_env_var",
    "require_env_var",
    "require_env_vars",
]
