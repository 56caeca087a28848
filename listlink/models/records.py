"""
Domain models for documents persisted in the store.

Stored field names are camelCase, matching the documents the web client reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LINK_CODES = "alexaLinkCodes"
AUTHORIZATION_CODES = "alexaAuthCodes"
REFRESH_TOKENS = "alexaRefreshTokens"
DEVICE_RECOVERY_KEYS = "deviceRecoveryKeys"
INVITES = "invites"
LISTS = "lists"


def list_items_collection(list_id: str) -> str:
    return f"{LISTS}/{list_id}/items"


class StoredRecord(BaseModel):
    """Base for records addressed by an opaque key within a collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key_field: ClassVar[str]

    @property
    def document_key(self) -> str:
        return getattr(self, self.key_field)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={self.key_field})

    @classmethod
    def from_document(cls, key: str, data: Dict[str, Any]):
        return cls.model_validate({**data, cls.key_field: key})

    def is_expired(self, now: datetime) -> bool:
        expires_at = getattr(self, "expires_at", None)
        return expires_at is not None and expires_at < now


class LinkCode(StoredRecord):
    """Short human-typable code binding a linking session to a list."""

    key_field: ClassVar[str] = "code"

    code: str
    owner_user_id: str
    list_id: str
    status: Literal["pending", "consumed", "expired"] = "pending"
    created_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    consumed_by_client_id: Optional[str] = None
    expired_at: Optional[datetime] = None


class AuthorizationCode(StoredRecord):
    """Single-use credential exchanged at the token endpoint."""

    key_field: ClassVar[str] = "code"

    code: str
    uid: str
    list_id: str
    client_id: str
    created_at: datetime
    expires_at: datetime


class RefreshToken(StoredRecord):
    """Long-lived credential used to mint new access tokens."""

    key_field: ClassVar[str] = "token"

    token: str
    uid: str
    list_id: str
    client_id: str
    created_at: datetime
    expires_at: datetime
    last_refreshed_at: datetime


class DeviceRecoveryKey(StoredRecord):
    """Recovery record keyed by the sha256 digest of the secret."""

    key_field: ClassVar[str] = "key_hash"

    key_hash: str
    list_id: str
    last_registered_by: str
    last_registered_at: datetime
    created_at: Optional[datetime] = None
    disabled: bool = False
    disabled_reason: Optional[str] = None
    disabled_at: Optional[datetime] = None
    last_claimed_by: Optional[str] = None
    last_claimed_at: Optional[datetime] = None


class Invite(StoredRecord):
    """Sharing token granting list membership to whoever redeems it."""

    key_field: ClassVar[str] = "code"

    code: str
    list_id: Optional[str] = None
    status: str = "active"
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None
    expired_at: Optional[datetime] = None

    @property
    def last_activity_at(self) -> Optional[datetime]:
        stamps = [s for s in (self.created_at, self.used_at, self.expired_at) if s]
        return max(stamps) if stamps else None


class ShoppingList(StoredRecord):
    """Shared list; only its membership is managed by this service."""

    key_field: ClassVar[str] = "list_id"

    list_id: str
    name: str = ""
    members: List[str] = Field(default_factory=list)
    member_profiles: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_member(self, uid: str) -> bool:
        return uid in self.members


__all__ = [
    "AUTHORIZATION_CODES",
    "AuthorizationCode",
    "DEVICE_RECOVERY_KEYS",
    "DeviceRecoveryKey",
    "INVITES",
    "Invite",
    "LINK_CODES",
    "LISTS",
    "LinkCode",
    "REFRESH_TOKENS",
    "RefreshToken",
    "ShoppingList",
    "StoredRecord",
    "list_items_collection",
]
