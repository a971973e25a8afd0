"""What the issuer says about itself."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class IssuerInfo:
    """``keysets`` is ``None`` when the issuer does not advertise its active keysets."""

    name: str | None = None
    version: str | None = None
    keysets: tuple[str, ...] | None = None
