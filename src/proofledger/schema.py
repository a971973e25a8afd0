"""Pydantic models for proofs and tokens as they appear on the wire and on disk."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, StringConstraints

from proofledger.domain.model import Proof


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProofPayload(PayloadModel):
    keyset_id: str = Field(alias="id", min_length=1)
    amount: PositiveInt
    secret: str = Field(min_length=1)
    signature: str = Field(alias="C", min_length=1)

    @classmethod
    def from_domain(cls, proof: Proof) -> ProofPayload:
        return cls(
            keyset_id=proof.keyset_id,
            amount=proof.amount,
            secret=proof.secret,
            signature=proof.signature,
        )

    def to_domain(self) -> Proof:
        return Proof(
            keyset_id=self.keyset_id,
            amount=self.amount,
            secret=self.secret,
            signature=self.signature,
        )


class TokenEntryPayload(PayloadModel):
    issuer_url: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)] = Field(
        alias="mint"
    )
    proofs: list[ProofPayload]


class TokenV3Payload(PayloadModel):
    """The JSON object inside a ``cashuA`` token."""

    entries: list[TokenEntryPayload] = Field(alias="token", min_length=1)
    unit: str | None = None
    memo: str | None = None
