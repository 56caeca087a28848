"""Membership checks and mutations on shared lists."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from listlink.clients.document_store import DocumentStore, Transaction
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import LISTS, ShoppingList, list_items_collection
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)


def load_list(reader: Any, list_id: str) -> Optional[ShoppingList]:
    """Fetch a list via a store or a transaction."""
    data = reader.get(LISTS, list_id)
    if data is None:
        return None
    return ShoppingList.from_document(list_id, data)


def add_member(
    txn: Transaction,
    shopping_list: ShoppingList,
    uid: str,
    *,
    now: datetime,
    display_name: Optional[str] = None,
) -> bool:
    """Add ``uid`` to the list inside ``txn``; returns whether it was already a member."""
    already_member = shopping_list.has_member(uid)
    fields: Dict[str, Any] = {}
    if not already_member:
        fields["members"] = [*shopping_list.members, uid]
    name = (display_name or "").strip()
    if name and shopping_list.member_profiles.get(uid) != name:
        fields["memberProfiles"] = {**shopping_list.member_profiles, uid: name}
    if fields:
        fields["updatedAt"] = now
        txn.update(LISTS, shopping_list.list_id, fields)
    return already_member


class ListService:
    """Read access and item writes for lists owned by the web app."""

    def __init__(self, store: DocumentStore, *, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def get_list(self, list_id: str) -> Optional[ShoppingList]:
        if not list_id:
            return None
        return load_list(self._store, list_id)

    def require_member(
        self,
        list_id: str,
        uid: str,
        *,
        not_found_message: str = "指定されたリストが見つかりませんでした。",
        denied_message: str = "このリストに対する権限がありません。",
    ) -> ShoppingList:
        shopping_list = self.get_list(list_id)
        if shopping_list is None:
            raise ServiceError(ErrorCode.NOT_FOUND, not_found_message)
        if not shopping_list.has_member(uid):
            raise ServiceError(ErrorCode.PERMISSION_DENIED, denied_message)
        return shopping_list

    def add_item(self, list_id: str, item_name: str, uid: Optional[str]) -> str:
        """Append an item on behalf of the voice assistant; returns the item id."""
        trimmed = (item_name or "").strip()
        if not trimmed:
            raise ServiceError(ErrorCode.INVALID_ARGUMENT, "Item name is empty")

        shopping_list = self.get_list(list_id)
        if shopping_list is None:
            raise ServiceError(ErrorCode.NOT_FOUND, "List not found")
        if uid and not shopping_list.has_member(uid):
            raise ServiceError(
                ErrorCode.PERMISSION_DENIED, "User is not a member of the list"
            )

        item_id = uuid4().hex
        self._store.create(
            list_items_collection(list_id),
            item_id,
            {
                "name": trimmed,
                "completed": False,
                "createdAt": self._clock(),
                "createdBy": uid,
                "source": "alexa",
            },
        )
        logger.info(
            "Voice item added",
            extra={"list_id": list_id, "item_id": item_id, "uid": uid},
        )
        return item_id


__all__ = ["ListService", "add_member", "load_list"]
