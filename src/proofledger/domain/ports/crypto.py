"""Ports for encrypting records before they leave the process."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class DecryptionFailedError(ValueError):
    """Raised by a cipher when ciphertext cannot be authenticated or decoded."""


@runtime_checkable
class RecordCipher(Protocol):
    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...
