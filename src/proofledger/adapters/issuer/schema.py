"""Pydantic models for issuer API payloads."""

from __future__ import annotations

from pydantic import Field

from proofledger.schema import PayloadModel


class CheckStateRequest(PayloadModel):
    ys: list[str] = Field(alias="Ys")


class ProofStatePayload(PayloadModel):
    y: str = Field(alias="Y")
    state: str
    witness: str | None = None


class CheckStateResponse(PayloadModel):
    states: list[ProofStatePayload]


class ErrorResponse(PayloadModel):
    detail: str | None = None
    code: int | None = None


class KeysetRefPayload(PayloadModel):
    id: str
    active: bool = True


class InfoResponse(PayloadModel):
    name: str | None = None
    version: str | None = None
    keysets: list[KeysetRefPayload] | None = None
