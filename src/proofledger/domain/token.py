"""Encoding and decoding of transmissible tokens.

Version 3 tokens are the string ``cashuA`` followed by unpadded base64url JSON of the form
``{"token": [{"mint": url, "proofs": [...]}], "unit": str, "memo": str}``. Version 4 (CBOR)
tokens are recognised but not decoded.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Final, Literal

from pydantic import ValidationError

from proofledger.domain.errors import InvalidTokenError
from proofledger.domain.model import Token
from proofledger.schema import ProofPayload, TokenEntryPayload, TokenV3Payload

V3_PREFIX: Final[str] = "cashuA"
V4_PREFIX: Final[str] = "cashuB"
DEFAULT_UNIT: Final[str] = "sat"

TokenVersion = Literal[3, 4]


@dataclass(frozen=True, slots=True)
class TokenInfo:
    version: TokenVersion
    issuer_url: str
    unit: str
    amount: int
    proof_count: int
    memo: str | None = None


@dataclass(frozen=True, slots=True)
class TokenValidation:
    valid: bool
    error: str | None = None
    info: TokenInfo | None = None


def normalize_issuer_url(url: str) -> str:
    """Issuer URLs compare equal regardless of surrounding whitespace or a trailing slash."""
    return url.strip().rstrip("/")


def same_issuer(left: str, right: str) -> bool:
    return normalize_issuer_url(left) == normalize_issuer_url(right)


def looks_like_token(value: object) -> bool:
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    return trimmed.startswith((V3_PREFIX, V4_PREFIX))


def _detect_version(encoded: str) -> TokenVersion | None:
    if encoded.startswith(V3_PREFIX):
        return 3
    if encoded.startswith(V4_PREFIX):
        return 4
    return None


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first["loc"])
    return f"{where}: {first['msg']}" if where else first["msg"]


def encode_token(token: Token) -> str:
    """Serialise ``token`` as a version 3 token string."""

    payload = TokenV3Payload(
        entries=[
            TokenEntryPayload(
                issuer_url=token.issuer_url,
                proofs=[ProofPayload.from_domain(proof) for proof in token.proofs],
            )
        ],
        unit=token.unit,
        memo=token.memo or None,
    )
    raw = payload.model_dump_json(by_alias=True, exclude_none=True).encode()
    return V3_PREFIX + base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _load_v3_payload(body: str) -> TokenV3Payload:
    padded = body + "=" * (-len(body) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise InvalidTokenError(f"Failed to decode token: {exc}") from exc
    try:
        return TokenV3Payload.model_validate_json(raw)
    except ValidationError as exc:
        raise InvalidTokenError(f"Invalid token payload: {_describe(exc)}") from exc


def decode_token(encoded: str) -> Token:
    """Parse a token string.

    Raises:
        InvalidTokenError: for an unknown prefix, undecodable payload, a missing issuer URL,
            proofs from more than one issuer, or an empty proof list.
    """

    trimmed = encoded.strip() if isinstance(encoded, str) else ""
    if not trimmed:
        raise InvalidTokenError("Token must be a non-empty string")
    version = _detect_version(trimmed)
    if version is None:
        raise InvalidTokenError("Invalid token format: must start with cashuA or cashuB")
    if version == 4:
        raise InvalidTokenError("Version 4 (cashuB) tokens are not supported")

    payload = _load_v3_payload(trimmed[len(V3_PREFIX) :])
    issuer_url = payload.entries[0].issuer_url
    if any(not same_issuer(issuer_url, entry.issuer_url) for entry in payload.entries):
        raise InvalidTokenError("Token mixes proofs from several issuers")

    proofs = tuple(proof.to_domain() for entry in payload.entries for proof in entry.proofs)
    if not proofs:
        raise InvalidTokenError("Token has no proofs")

    return Token(
        issuer_url=issuer_url,
        unit=payload.unit or DEFAULT_UNIT,
        proofs=proofs,
        memo=payload.memo,
    )


def parse_token(encoded: str) -> TokenInfo:
    token = decode_token(encoded)
    return TokenInfo(
        version=3,
        issuer_url=token.issuer_url,
        unit=token.unit,
        amount=token.amount,
        proof_count=len(token.proofs),
        memo=token.memo,
    )


def validate_token(encoded: str) -> TokenValidation:
    try:
        info = parse_token(encoded)
    except InvalidTokenError as exc:
        return TokenValidation(valid=False, error=str(exc))
    return TokenValidation(valid=True, info=info)
