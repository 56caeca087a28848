"""Symmetric sealing for access tokens handed to the voice-assistant platform."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class TokenSealer:
    """Seal and unseal token payloads using a Fernet key derived from a secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token sealing secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def seal(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def unseal(self, sealed: str) -> str:
        """Return the plaintext; raises ``ValueError`` for tampered or foreign tokens."""
        try:
            plaintext = self._fernet.decrypt(sealed.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Failed to unseal token; invalid ciphertext provided.") from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenSealer"]
