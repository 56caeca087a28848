"""
Issues short link codes that bind a voice-assistant linking session to a list.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from listlink.core.config import AlexaSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import LinkCode
from listlink.schemas import LinkCodeIssued
from listlink.services.credential_store import CredentialStore
from listlink.services.lists import ListService
from listlink.utils.keys import create_with_unique_key, generate_link_code
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)


class LinkCodeIssuer:
    """Creates pending link codes for members of a list."""

    def __init__(
        self,
        credentials: CredentialStore,
        lists: ListService,
        settings: AlexaSettings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._lists = lists
        self._settings = settings
        self._clock = clock

    def create_link_code(self, *, caller_uid: str, list_id: str | None) -> LinkCodeIssued:
        if not list_id or not isinstance(list_id, str):
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "有効なリストIDを指定してください。")
        self._lists.require_member(list_id, caller_uid)

        ttl_minutes = self._settings.link_code_ttl_minutes
        now = self._clock()
        expires_at = now + timedelta(minutes=ttl_minutes)

        def _create(code: str) -> None:
            self._credentials.create_link_code(
                LinkCode(
                    code=code,
                    owner_user_id=caller_uid,
                    list_id=list_id,
                    status="pending",
                    created_at=now,
                    expires_at=expires_at,
                )
            )

        code = create_with_unique_key(
            _create,
            generate_link_code,
            exhausted_message="リンクコードを生成できませんでした。時間をおいて再試行してください。",
        )
        logger.info("Link code issued", extra={"list_id": list_id, "uid": caller_uid})
        return LinkCodeIssued(code=code, expires_at=expires_at, ttl_minutes=ttl_minutes)


__all__ = ["LinkCodeIssuer"]
