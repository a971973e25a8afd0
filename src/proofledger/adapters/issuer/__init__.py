"""Issuer HTTP adapter."""

from __future__ import annotations

from .client import CHECKSTATE_PATH, INFO_PATH, HttpIssuerClient
from .schema import CheckStateRequest, CheckStateResponse, InfoResponse, ProofStatePayload

__all__ = [
    "CHECKSTATE_PATH",
    "INFO_PATH",
    "CheckStateRequest",
    "CheckStateResponse",
    "HttpIssuerClient",
    "InfoResponse",
    "ProofStatePayload",
]
