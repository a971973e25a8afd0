"""Wallet error taxonomy with structured diagnostics.

Every error raised by the wallet carries a :class:`CreationDiagnostics` record so callers can
render a precise message (shortfall, denominations on hand, a suggestion) without parsing the
exception text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from proofledger.domain.model import denomination_histogram, total_amount

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof


class ErrorCode(StrEnum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    WALLET_NOT_LOADED = "WALLET_NOT_LOADED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    SELECTION_FAILED = "SELECTION_FAILED"
    SWAP_FAILED = "SWAP_FAILED"
    TRANSPORT = "TRANSPORT"
    NO_STATE_CHECKER = "NO_STATE_CHECKER"


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def generate_suggestion(
    code: ErrorCode,
    *,
    requested_amount: int,
    available_balance: int,
    available_denominations: Sequence[int],
) -> str | None:
    """Return an actionable hint for ``code`` given the wallet's current holdings."""

    match code:
        case ErrorCode.INSUFFICIENT_BALANCE:
            needed = requested_amount - available_balance
            if available_balance == 0:
                return f"Wallet is empty. Add at least {requested_amount} credits to continue."
            return f"Add {needed} more credit{_plural(needed)} to your wallet."
        case ErrorCode.SELECTION_FAILED:
            if not available_denominations:
                return "Wallet is empty. Add credits to continue."
            smallest = min(available_denominations)
            if len(available_denominations) == 1 and smallest > requested_amount:
                return (
                    f"Only have {smallest}-credit proofs. A swap will break these into "
                    "smaller denominations."
                )
            if requested_amount < smallest:
                return (
                    f"Smallest available denomination is {smallest}. "
                    f"Try requesting at least {smallest} credits."
                )
            return "Try a different amount or consolidate your proofs."
        case ErrorCode.INVALID_AMOUNT:
            return "Provide a positive whole number for the amount."
        case ErrorCode.WALLET_NOT_LOADED:
            return "Call wallet.load() before creating tokens."
        case ErrorCode.INVALID_TOKEN:
            return "Check that the token was issued by this wallet's issuer and unit."
        case ErrorCode.SWAP_FAILED:
            return "Your proofs are still held. Retry once the issuer is reachable."
        case ErrorCode.NO_STATE_CHECKER:
            return "Configure the issuer so held proofs can be checked."
        case _:
            return None


@dataclass(frozen=True, slots=True)
class CreationDiagnostics:
    code: ErrorCode
    requested_amount: int
    available_balance: int
    denomination_histogram: dict[int, int] = field(default_factory=dict)
    partial_selection: tuple[Proof, ...] = ()
    suggestion: str | None = None

    @classmethod
    def build(
        cls,
        code: ErrorCode,
        *,
        requested_amount: int,
        proofs: Sequence[Proof],
        partial_selection: Sequence[Proof] = (),
        suggestion: str | None = None,
    ) -> CreationDiagnostics:
        histogram = denomination_histogram(proofs)
        balance = total_amount(proofs)
        if suggestion is None:
            suggestion = generate_suggestion(
                code,
                requested_amount=requested_amount,
                available_balance=balance,
                available_denominations=list(histogram),
            )
        return cls(
            code=code,
            requested_amount=requested_amount,
            available_balance=balance,
            denomination_histogram=histogram,
            partial_selection=tuple(partial_selection),
            suggestion=suggestion,
        )

    @property
    def available_denominations(self) -> list[int]:
        return sorted(self.denomination_histogram)

    @property
    def selected_total(self) -> int:
        return total_amount(self.partial_selection)

    @property
    def shortfall(self) -> int:
        return max(0, self.requested_amount - self.available_balance)

    def to_dict(self) -> dict[str, object]:
        return {
            "code": self.code.value,
            "requested_amount": self.requested_amount,
            "available_balance": self.available_balance,
            "available_denominations": self.available_denominations,
            "denomination_histogram": dict(self.denomination_histogram),
            "selected_total": self.selected_total,
            "shortfall": self.shortfall,
            "suggestion": self.suggestion,
        }


class WalletError(Exception):
    """Base class for wallet failures."""

    code: ClassVar[ErrorCode] = ErrorCode.SELECTION_FAILED

    def __init__(self, message: str, *, diagnostics: CreationDiagnostics | None = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics

    @property
    def error_code(self) -> ErrorCode:
        if self.diagnostics is not None:
            return self.diagnostics.code
        return self.code

    @property
    def suggestion(self) -> str | None:
        return self.diagnostics.suggestion if self.diagnostics else None

    @property
    def user_message(self) -> str:
        diagnostics = self.diagnostics
        if diagnostics is None:
            return str(self)
        match diagnostics.code:
            case ErrorCode.INSUFFICIENT_BALANCE:
                needed = diagnostics.shortfall
                return (
                    f"Need {needed} more credit{_plural(needed)} "
                    f"(have {diagnostics.available_balance}, need {diagnostics.requested_amount})"
                )
            case ErrorCode.SELECTION_FAILED:
                return (
                    f"Cannot create exact amount of {diagnostics.requested_amount} "
                    "from available proofs"
                )
            case ErrorCode.INVALID_AMOUNT:
                return "Amount must be a positive whole number"
            case ErrorCode.WALLET_NOT_LOADED:
                return "Wallet must be loaded before creating tokens"
            case ErrorCode.SWAP_FAILED:
                return "Failed to swap proofs for exact amount"
            case _:
                return str(self)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": type(self).__name__,
            "code": self.error_code.value,
            "message": str(self),
        }
        if self.diagnostics is not None:
            payload.update(self.diagnostics.to_dict())
        return payload


class ValidationError(WalletError):
    """Invalid amount, malformed token or an unloaded wallet."""

    code = ErrorCode.INVALID_AMOUNT


class InvalidTokenError(ValidationError):
    """A token could not be decoded or does not belong to this wallet's issuer and unit."""

    code = ErrorCode.INVALID_TOKEN


class InsufficientBalanceError(WalletError):
    code = ErrorCode.INSUFFICIENT_BALANCE


class SelectionFailedError(WalletError):
    """Balance suffices but no usable combination exists and no swap is available."""

    code = ErrorCode.SELECTION_FAILED


class SwapFailedError(WalletError):
    """The issuer rejected the swap; the surrendered proofs remain held."""

    code = ErrorCode.SWAP_FAILED


class TransportError(WalletError):
    """Transient failure talking to the issuer or relay. Callers decide whether to retry."""

    code = ErrorCode.TRANSPORT


class IssuerResponseError(TransportError):
    """The issuer answered with a payload that does not match the expected schema."""


@dataclass(frozen=True, slots=True)
class ConflictDetected:
    """Signal delivered to listeners when local proofs are unknown to the remote copy."""

    local: tuple[Proof, ...]
    remote: tuple[Proof, ...]

    @property
    def local_only(self) -> tuple[Proof, ...]:
        remote_ids = {proof.public_id for proof in self.remote}
        return tuple(proof for proof in self.local if proof.public_id not in remote_ids)
