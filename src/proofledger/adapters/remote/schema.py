"""Pydantic models for decrypted remote record content."""

from __future__ import annotations

from pydantic import Field

from proofledger.schema import PayloadModel, ProofPayload


class ProofRecordContent(PayloadModel):
    """Plaintext of a proofs record: ``{"mint", "unit", "proofs", "del"}``."""

    mint: str = Field(min_length=1)
    unit: str | None = None
    proofs: list[ProofPayload] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list, alias="del")
