"""
Front-channel half of the account-linking flow.

Validates the OAuth parameters carried by the consent page and exchanges a
submitted link code for a single-use authorization code.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from listlink.clients.document_store import Transaction
from listlink.core.config import AlexaSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import AUTHORIZATION_CODES, LINK_CODES, AuthorizationCode, LinkCode
from listlink.schemas import AuthorizeParams
from listlink.services.credential_store import CredentialStore
from listlink.utils.keys import LINK_CODE_LENGTH, generate_token
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)

REQUIRED_AUTHORIZE_PARAMS = ("response_type", "client_id", "redirect_uri", "state")

MESSAGE_BAD_LINK_CODE = "リンクコードを正しく入力してください。"
MESSAGE_UNKNOWN_LINK_CODE = "無効なリンクコードです。"
MESSAGE_CONSUMED_LINK_CODE = "このコードは既に使用されています。"
MESSAGE_EXPIRED_LINK_CODE = "コードの有効期限が切れています。"
MESSAGE_INTERNAL_ERROR = "内部エラーが発生しました。しばらくしてからお試しください。"


def is_client_allowed(
    settings: AlexaSettings,
    client_id: Optional[str],
    client_secret: Optional[str] = None,
    *,
    enforce_secret: bool = False,
) -> bool:
    """Check a client against the configured allow-list (and secret, if asked)."""
    allowed = settings.allowed_client_ids
    if allowed and client_id not in allowed:
        return False
    if enforce_secret and settings.client_secret and client_secret != settings.client_secret:
        return False
    return True


class _Redemption(Enum):
    ISSUED = "issued"
    UNKNOWN = "unknown"
    CONSUMED = "consumed"
    EXPIRED = "expired"


class AuthorizationService:
    """Consumes link codes and mints authorization codes."""

    def __init__(
        self,
        credentials: CredentialStore,
        settings: AlexaSettings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._settings = settings
        self._clock = clock

    def validate_params(self, source: Mapping[str, Any]) -> AuthorizeParams:
        """Validate ``response_type``/``client_id``/``redirect_uri``/``state``."""
        values = {}
        for name in REQUIRED_AUTHORIZE_PARAMS:
            raw = source.get(name)
            if not raw:
                raise ServiceError(ErrorCode.INVALID_ARGUMENT, f"Missing parameter: {name}")
            values[name] = str(raw)

        if values["response_type"] != "code":
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Unsupported response_type")
        if not is_client_allowed(self._settings, values["client_id"]):
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Unauthorized client")

        redirect = urlsplit(values["redirect_uri"])
        if redirect.scheme not in ("http", "https") or not redirect.netloc:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Invalid redirect_uri")

        return AuthorizeParams(**values)

    def redeem_link_code(self, params: AuthorizeParams, raw_link_code: Optional[str]) -> str:
        """
        Exchange a link code for an authorization code.

        Returns the redirect URL carrying ``code`` and ``state``. Failures raise
        ``ServiceError`` with a message suitable for the consent page.
        """
        link_code = (raw_link_code or "").strip().upper()
        if len(link_code) != LINK_CODE_LENGTH:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, MESSAGE_BAD_LINK_CODE)

        now = self._clock()
        auth_code = generate_token(24)
        def _redeem(txn: Transaction) -> Tuple[_Redemption, Optional[LinkCode]]:
            data = txn.get(LINK_CODES, link_code)
            if data is None:
                return _Redemption.UNKNOWN, None
            record = LinkCode.from_document(link_code, data)
            if record.status == "consumed":
                return _Redemption.CONSUMED, record
            if record.status == "expired":
                return _Redemption.EXPIRED, record
            if record.is_expired(now):
                txn.update(LINK_CODES, link_code, {"status": "expired", "expiredAt": now})
                return _Redemption.EXPIRED, record

            issued = AuthorizationCode(
                code=auth_code,
                uid=record.owner_user_id,
                list_id=record.list_id,
                client_id=params.client_id,
                created_at=now,
                expires_at=now + timedelta(minutes=self._settings.auth_code_ttl_minutes),
            )
            txn.create(AUTHORIZATION_CODES, auth_code, issued.to_document())
            txn.update(
                LINK_CODES,
                link_code,
                {
                    "status": "consumed",
                    "consumedAt": now,
                    "consumedByClientId": params.client_id,
                },
            )
            return _Redemption.ISSUED, record

        outcome, record = self._credentials.run_transaction(_redeem)

        if outcome is _Redemption.UNKNOWN:
            raise ServiceError(ErrorCode.NOT_FOUND, MESSAGE_UNKNOWN_LINK_CODE)
        if outcome is _Redemption.CONSUMED:
            raise ServiceError(ErrorCode.FAILED_PRECONDITION, MESSAGE_CONSUMED_LINK_CODE)
        if outcome is _Redemption.EXPIRED:
            raise ServiceError(ErrorCode.DEADLINE_EXCEEDED, MESSAGE_EXPIRED_LINK_CODE)

        logger.info(
            "Link code redeemed",
            extra={"list_id": record.list_id, "uid": record.owner_user_id, "client_id": params.client_id},
        )
        return build_redirect_url(params.redirect_uri, code=auth_code, state=params.state)


def build_redirect_url(redirect_uri: str, *, code: str, state: Optional[str]) -> str:
    """Append ``code`` (and ``state``) to the redirect URI, keeping its query."""
    parts = urlsplit(redirect_uri)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in ("code", "state")]
    query.append(("code", code))
    if state:
        query.append(("state", state))
    return urlunsplit(parts._replace(query=urlencode(query)))


__all__ = [
    "AuthorizationService",
    "MESSAGE_CONSUMED_LINK_CODE",
    "MESSAGE_EXPIRED_LINK_CODE",
    "MESSAGE_INTERNAL_ERROR",
    "MESSAGE_UNKNOWN_LINK_CODE",
    "build_redirect_url",
    "is_client_allowed",
]
