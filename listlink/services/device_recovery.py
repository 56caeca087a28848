"""
Device recovery keys.

A recovery key is a random secret handed to a list member once. Presenting it
later from a fresh device (a new anonymous identity, typically) re-adds that
identity to the list without a sign-in. Only the sha256 digest is stored.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

from listlink.clients.document_store import Transaction
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import DEVICE_RECOVERY_KEYS, DeviceRecoveryKey
from listlink.schemas import DeviceRecoveryClaim, DeviceRecoveryRegistration
from listlink.services.credential_store import CredentialStore
from listlink.services.lists import ListService, add_member, load_list
from listlink.utils.keys import create_with_unique_key, generate_token, hash_secret
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)

DISABLED_LIST_NOT_FOUND = "list-not-found"

_ORPHANED = object()


class DeviceRecoveryManager:
    """Registers and claims device recovery keys."""

    def __init__(
        self,
        credentials: CredentialStore,
        lists: ListService,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._credentials = credentials
        self._lists = lists
        self._clock = clock

    def register(
        self,
        *,
        caller_uid: str,
        list_id: Optional[str],
        existing_key: Optional[str] = None,
    ) -> DeviceRecoveryRegistration:
        if not list_id or not isinstance(list_id, str):
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "有効なリストIDを指定してください。")
        self._lists.require_member(list_id, caller_uid)

        now = self._clock()
        existing_key = (existing_key or "").strip()
        if existing_key:
            key_hash = hash_secret(existing_key)
            record = self._credentials.get_recovery_key(key_hash)
            if record is not None and record.list_id == list_id and not record.disabled:
                self._credentials.update_recovery_key(
                    key_hash,
                    {"lastRegisteredBy": caller_uid, "lastRegisteredAt": now},
                )
                logger.info(
                    "Device recovery key refreshed",
                    extra={"list_id": list_id, "uid": caller_uid},
                )
                return DeviceRecoveryRegistration(list_id=list_id, recovery_key=existing_key)

        def _create(secret: str) -> None:
            self._credentials.create_recovery_key(
                DeviceRecoveryKey(
                    key_hash=hash_secret(secret),
                    list_id=list_id,
                    last_registered_by=caller_uid,
                    last_registered_at=now,
                    created_at=now,
                    disabled=False,
                )
            )

        secret = create_with_unique_key(
            _create,
            generate_token,
            exhausted_message="復元キーを生成できませんでした。時間をおいて再試行してください。",
        )
        logger.info("Device recovery key issued", extra={"list_id": list_id, "uid": caller_uid})
        return DeviceRecoveryRegistration(list_id=list_id, recovery_key=secret)

    def claim(
        self,
        *,
        caller_uid: str,
        recovery_key: Optional[str],
        display_name: Optional[str] = None,
    ) -> DeviceRecoveryClaim:
        if not recovery_key or not isinstance(recovery_key, str):
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "有効な復元キーを指定してください。")

        key_hash = hash_secret(recovery_key.strip())
        now = self._clock()

        def _claim(txn: Transaction) -> Union[object, Tuple[str, str, bool]]:
            data = txn.get(DEVICE_RECOVERY_KEYS, key_hash)
            if data is None:
                raise ServiceError(ErrorCode.NOT_FOUND, "復元キーが見つかりませんでした。")
            record = DeviceRecoveryKey.from_document(key_hash, data)
            if record.disabled:
                raise ServiceError(ErrorCode.FAILED_PRECONDITION, "この復元キーは無効化されています。")

            shopping_list = load_list(txn, record.list_id)
            if shopping_list is None:
                txn.update(
                    DEVICE_RECOVERY_KEYS,
                    key_hash,
                    {
                        "disabled": True,
                        "disabledReason": DISABLED_LIST_NOT_FOUND,
                        "disabledAt": now,
                    },
                )
                return _ORPHANED

            already_member = add_member(
                txn, shopping_list, caller_uid, now=now, display_name=display_name
            )
            txn.update(
                DEVICE_RECOVERY_KEYS,
                key_hash,
                {"lastClaimedBy": caller_uid, "lastClaimedAt": now},
            )
            return shopping_list.list_id, shopping_list.name, already_member

        result = self._credentials.run_transaction(_claim)
        if result is _ORPHANED:
            logger.warning("Device recovery key disabled; list is gone")
            raise ServiceError(ErrorCode.NOT_FOUND, "復元先のリストが存在しません。")

        list_id, list_name, already_member = result
        logger.info(
            "Device recovery key claimed",
            extra={"list_id": list_id, "uid": caller_uid, "already_member": already_member},
        )
        return DeviceRecoveryClaim(
            list_id=list_id, list_name=list_name, already_member=already_member
        )


__all__ = ["DISABLED_LIST_NOT_FOUND", "DeviceRecoveryManager"]
