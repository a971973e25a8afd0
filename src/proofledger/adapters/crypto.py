"""AES-256-GCM record cipher for history entries and remote proof records."""

from __future__ import annotations

import base64
import binascii
import os
from typing import TYPE_CHECKING, Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from proofledger.domain.ports.crypto import DecryptionFailedError

if TYPE_CHECKING:
    from proofledger.domain.ports.crypto import RecordCipher

KEY_BYTES: Final[int] = 32
NONCE_BYTES: Final[int] = 12


class AesGcmCipher:
    """Encrypts text to ``base64(nonce || ciphertext || tag)`` with a fresh random nonce.

    ``associated_data`` binds every ciphertext to a context (e.g. the account), so an entry
    copied between contexts fails to decrypt.
    """

    def __init__(self, key: bytes, *, associated_data: bytes | None = None) -> None:
        if len(key) != KEY_BYTES:
            raise ValueError(f"Key must be exactly {KEY_BYTES} bytes, got {len(key)}")
        self._aead = AESGCM(key)
        self._associated_data = associated_data

    @classmethod
    def generate(cls, *, associated_data: bytes | None = None) -> AesGcmCipher:
        return cls(os.urandom(KEY_BYTES), associated_data=associated_data)

    @classmethod
    def derive(
        cls,
        secret: bytes,
        *,
        salt: bytes,
        context: str = "proofledger-records",
        associated_data: bytes | None = None,
    ) -> AesGcmCipher:
        """Derive a key from a master secret with HKDF-SHA256."""
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=KEY_BYTES,
            salt=salt,
            info=context.encode("utf-8"),
        )
        return cls(hkdf.derive(secret), associated_data=associated_data)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), self._associated_data)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionFailedError("Ciphertext is not valid base64") from exc
        if len(raw) <= NONCE_BYTES:
            raise DecryptionFailedError("Ciphertext is too short")
        nonce, sealed = raw[:NONCE_BYTES], raw[NONCE_BYTES:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, self._associated_data)
        except InvalidTag as exc:
            raise DecryptionFailedError("Ciphertext failed authentication") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionFailedError("Plaintext is not UTF-8") from exc


if TYPE_CHECKING:
    _cipher_check: RecordCipher = AesGcmCipher(bytes(KEY_BYTES))
