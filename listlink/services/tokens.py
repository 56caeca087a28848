"""
Back-channel token grants for the voice-assistant platform.

Implements the ``authorization_code`` and ``refresh_token`` grants and the
codec for the opaque access token those grants hand out.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from listlink.clients.document_store import to_epoch_millis
from listlink.core.config import AlexaSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import RefreshToken
from listlink.schemas import AccessTokenPayload, TokenResponse
from listlink.services.authorization import is_client_allowed
from listlink.services.credential_store import CredentialStore
from listlink.services.token_sealing import TokenSealer
from listlink.utils.keys import create_with_unique_key, generate_token
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_AUDIENCE = "alexa-shopping-list"
ACCESS_TOKEN_ISSUER = "firebase-functions"


class AccessTokenCodec:
    """Encodes access-token claims as JSON, optionally sealed with Fernet."""

    def __init__(
        self,
        *,
        ttl_seconds: int,
        sealer: Optional[TokenSealer] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._sealer = sealer
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: AlexaSettings, *, clock: Clock = utcnow) -> "AccessTokenCodec":
        sealer = None
        if settings.access_token_sealing_secret:
            sealer = TokenSealer(secret=settings.access_token_sealing_secret)
        return cls(ttl_seconds=settings.access_token_ttl_seconds, sealer=sealer, clock=clock)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, *, uid: str, list_id: str) -> str:
        """Mint a token for ``uid``/``list_id`` expiring after the configured TTL."""
        expires_at = self._clock() + timedelta(seconds=self._ttl_seconds)
        payload = AccessTokenPayload(
            uid=uid,
            list_id=list_id,
            aud=ACCESS_TOKEN_AUDIENCE,
            iss=ACCESS_TOKEN_ISSUER,
            exp=to_epoch_millis(expires_at),
        )
        return self.encode(payload)

    def encode(self, payload: AccessTokenPayload) -> str:
        raw = payload.model_dump_json(by_alias=True, exclude_none=True)
        if self._sealer is not None:
            return self._sealer.seal(raw)
        return raw

    def decode(self, token: Optional[str]) -> Optional[AccessTokenPayload]:
        """Return the claims, or ``None`` when the token is unreadable or expired."""
        if not token or not isinstance(token, str):
            return None
        raw = token
        if self._sealer is not None:
            try:
                raw = self._sealer.unseal(token)
            except ValueError:
                logger.warning("Failed to unseal access token")
                return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Failed to parse access token")
            return None
        if not isinstance(data, dict):
            return None
        try:
            payload = AccessTokenPayload.model_validate(data)
        except ValidationError:
            logger.warning("Access token claims are malformed")
            return None
        if payload.exp is not None and payload.exp < to_epoch_millis(self._clock()):
            logger.warning("Access token expired", extra={"exp": payload.exp})
            return None
        return payload


class TokenService:
    """Runs the token endpoint's grants against the credential store."""

    def __init__(
        self,
        credentials: CredentialStore,
        settings: AlexaSettings,
        codec: AccessTokenCodec,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._settings = settings
        self._codec = codec
        self._clock = clock

    def _require_client(self, client_id: Optional[str], client_secret: Optional[str]) -> None:
        if not is_client_allowed(
            self._settings, client_id, client_secret, enforce_secret=True
        ):
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Unauthorized client")

    def exchange_authorization_code(
        self,
        code: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str] = None,
    ) -> TokenResponse:
        if not code:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Missing authorization code")
        self._require_client(client_id, client_secret)

        # Deleted as part of the read: a code is spent by any redemption attempt.
        record = self._credentials.take_authorization_code(code)
        if record is None:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Authorization code not found")
        if record.client_id and record.client_id != client_id:
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Authorization code client mismatch")

        now = self._clock()
        if record.is_expired(now):
            raise ServiceError(ErrorCode.DEADLINE_EXCEEDED, "Authorization code expired")

        expires_at = now + timedelta(days=self._settings.refresh_token_ttl_days)

        def _create(token: str) -> None:
            self._credentials.create_refresh_token(
                RefreshToken(
                    token=token,
                    uid=record.uid,
                    list_id=record.list_id,
                    client_id=client_id,
                    created_at=now,
                    expires_at=expires_at,
                    last_refreshed_at=now,
                )
            )

        refresh_token = create_with_unique_key(
            _create,
            generate_token,
            exhausted_message="Could not allocate a refresh token",
        )
        logger.info(
            "Authorization code exchanged",
            extra={"list_id": record.list_id, "uid": record.uid, "client_id": client_id},
        )
        return TokenResponse(
            access_token=self._codec.issue(uid=record.uid, list_id=record.list_id),
            expires_in=self._codec.ttl_seconds,
            refresh_token=refresh_token,
        )

    def refresh(
        self,
        refresh_token: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str] = None,
    ) -> TokenResponse:
        if not refresh_token:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Missing refresh token")
        self._require_client(client_id, client_secret)

        record = self._credentials.get_refresh_token(refresh_token)
        if record is None:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Refresh token not found")
        if record.client_id and record.client_id != client_id:
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Refresh token client mismatch")

        now = self._clock()
        if record.is_expired(now):
            self._credentials.delete_refresh_token(refresh_token)
            raise ServiceError(ErrorCode.DEADLINE_EXCEEDED, "Refresh token expired")

        self._credentials.touch_refresh_token(
            refresh_token, _latest(now, record.last_refreshed_at)
        )
        logger.info(
            "Refresh token used",
            extra={"list_id": record.list_id, "uid": record.uid, "client_id": client_id},
        )
        return TokenResponse(
            access_token=self._codec.issue(uid=record.uid, list_id=record.list_id),
            expires_in=self._codec.ttl_seconds,
            refresh_token=refresh_token,
        )


def _latest(now: datetime, previous: Optional[datetime]) -> datetime:
    if previous is not None and previous > now:
        return previous
    return now


__all__ = [
    "ACCESS_TOKEN_AUDIENCE",
    "ACCESS_TOKEN_ISSUER",
    "AccessTokenCodec",
    "TokenService",
]
