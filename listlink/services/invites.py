"""Invite-based list sharing."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Tuple, Union

from listlink.clients.document_store import DocumentStore, Transaction
from listlink.core.config import MaintenanceSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import INVITES, Invite
from listlink.schemas import InviteAcceptance, InviteIssued
from listlink.services.lists import ListService, add_member, load_list
from listlink.utils.keys import create_with_unique_key, generate_invite_code
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)

_EXPIRED = object()


class InviteService:
    """Issues invites and adds their redeemers to the invited list."""

    def __init__(
        self,
        store: DocumentStore,
        lists: ListService,
        settings: MaintenanceSettings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._lists = lists
        self._settings = settings
        self._clock = clock

    def create_invite(self, *, caller_uid: str, list_id: Optional[str]) -> InviteIssued:
        if not list_id or not isinstance(list_id, str):
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "有効なリストIDを指定してください。")
        self._lists.require_member(list_id, caller_uid)

        now = self._clock()
        expires_at = now + timedelta(days=self._settings.invite_ttl_days)

        def _create(code: str) -> None:
            invite = Invite(
                code=code,
                list_id=list_id,
                status="active",
                created_by=caller_uid,
                created_at=now,
                expires_at=expires_at,
            )
            self._store.create(INVITES, code, invite.to_document())

        code = create_with_unique_key(
            _create,
            generate_invite_code,
            exhausted_message="招待コードを生成できませんでした。時間をおいて再試行してください。",
        )
        logger.info("Invite created", extra={"list_id": list_id, "uid": caller_uid})
        return InviteIssued(invite_code=code, list_id=list_id, expires_at=expires_at)

    def accept_invite(
        self,
        *,
        caller_uid: str,
        invite_code: Optional[str],
        display_name: Optional[str] = None,
    ) -> InviteAcceptance:
        if not invite_code or not isinstance(invite_code, str):
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "有効な招待コードを指定してください。")

        now = self._clock()

        def _accept(txn: Transaction) -> Union[object, Tuple[str, bool]]:
            data = txn.get(INVITES, invite_code)
            if data is None:
                raise ServiceError(ErrorCode.NOT_FOUND, "招待コードが見つかりませんでした。")
            invite = Invite.from_document(invite_code, data)
            if not invite.list_id:
                raise ServiceError(ErrorCode.FAILED_PRECONDITION, "招待先のリスト情報が無効です。")
            if invite.status and invite.status != "active":
                raise ServiceError(ErrorCode.FAILED_PRECONDITION, "この招待リンクは使用できません。")
            if invite.is_expired(now):
                txn.update(INVITES, invite_code, {"status": "expired", "expiredAt": now})
                return _EXPIRED

            shopping_list = load_list(txn, invite.list_id)
            if shopping_list is None:
                raise ServiceError(ErrorCode.NOT_FOUND, "招待先のリストが存在しません。")

            already_member = add_member(
                txn, shopping_list, caller_uid, now=now, display_name=display_name
            )
            txn.update(
                INVITES,
                invite_code,
                {"status": "used", "usedAt": now, "usedBy": caller_uid},
            )
            return invite.list_id, already_member

        result = self._store.run_transaction(_accept)
        if result is _EXPIRED:
            raise ServiceError(ErrorCode.DEADLINE_EXCEEDED, "招待リンクの有効期限が切れています。")

        list_id, already_member = result
        logger.info("Invite accepted", extra={"list_id": list_id, "uid": caller_uid})
        return InviteAcceptance(list_id=list_id, already_member=already_member)


__all__ = ["InviteService"]
