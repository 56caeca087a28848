"""Random credential generation and the collision-retry insert helper."""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Callable, Optional

from listlink.clients.document_store import AlreadyExistsError
from listlink.core.errors import ErrorCode, ServiceError

logger = logging.getLogger(__name__)

# 32 symbols, no 0/O/1/I.
LINK_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
LINK_CODE_LENGTH = 6


def generate_link_code(length: int = LINK_CODE_LENGTH) -> str:
    return "".join(secrets.choice(LINK_CODE_ALPHABET) for _ in range(length))


def generate_token(byte_length: int = 32) -> str:
    """Hex-encoded random token of ``byte_length`` bytes."""
    return secrets.token_hex(byte_length)


def generate_invite_code() -> str:
    return secrets.token_urlsafe(12)


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


class RetryConfig:
    def __init__(self, *, attempts: int = 5) -> None:
        self.attempts = attempts


def create_with_unique_key(
    create: Callable[[str], None],
    generate: Callable[[], str],
    *,
    exhausted_message: str,
    retry_config: Optional[RetryConfig] = None,
) -> str:
    """
    Draw candidates from ``generate`` until ``create`` accepts one.

    ``create`` must perform an atomic create-if-absent and raise
    ``AlreadyExistsError`` on collision. Returns the accepted candidate; raises
    ``resource-exhausted`` once the attempt budget is spent.
    """
    config = retry_config or RetryConfig()
    for attempt in range(1, config.attempts + 1):
        candidate = generate()
        try:
            create(candidate)
        except AlreadyExistsError as exc:
            logger.warning(
                "Generated key collided; drawing again",
                extra={"collection": exc.collection, "attempt": attempt},
            )
            continue
        return candidate

    raise ServiceError(ErrorCode.RESOURCE_EXHAUSTED, exhausted_message)


__all__ = [
    "LINK_CODE_ALPHABET",
    "LINK_CODE_LENGTH",
    "RetryConfig",
    "create_with_unique_key",
    "generate_invite_code",
    "generate_link_code",
    "generate_token",
    "hash_secret",
]
