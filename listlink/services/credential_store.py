"""
Typed persistence facade over the four credential collections.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Type, TypeVar

from listlink.clients.document_store import DocumentStore, Transaction
from listlink.models.records import (
    AUTHORIZATION_CODES,
    DEVICE_RECOVERY_KEYS,
    LINK_CODES,
    REFRESH_TOKENS,
    AuthorizationCode,
    DeviceRecoveryKey,
    LinkCode,
    RefreshToken,
    StoredRecord,
)

R = TypeVar("R", bound=StoredRecord)
T = TypeVar("T")

EXPIRING_COLLECTIONS = (LINK_CODES, AUTHORIZATION_CODES, REFRESH_TOKENS)


class CredentialStore:
    """Reads and writes credential records through a document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _load(self, model: Type[R], collection: str, key: str) -> Optional[R]:
        if not key:
            return None
        data = self._store.get(collection, key)
        if data is None:
            return None
        return model.from_document(key, data)

    def run_transaction(self, func: Callable[[Transaction], T]) -> T:
        return self._store.run_transaction(func)

    # Link codes

    def create_link_code(self, record: LinkCode) -> None:
        """Atomic create; raises ``AlreadyExistsError`` when the code is taken."""
        self._store.create(LINK_CODES, record.code, record.to_document())

    def get_link_code(self, code: str) -> Optional[LinkCode]:
        return self._load(LinkCode, LINK_CODES, code)

    # Authorization codes

    def create_authorization_code(self, record: AuthorizationCode) -> None:
        self._store.create(AUTHORIZATION_CODES, record.code, record.to_document())

    def get_authorization_code(self, code: str) -> Optional[AuthorizationCode]:
        return self._load(AuthorizationCode, AUTHORIZATION_CODES, code)

    def take_authorization_code(self, code: str) -> Optional[AuthorizationCode]:
        """Read and delete an authorization code in one transaction."""
        if not code:
            return None

        def _take(txn: Transaction) -> Optional[Dict[str, Any]]:
            data = txn.get(AUTHORIZATION_CODES, code)
            if data is not None:
                txn.delete(AUTHORIZATION_CODES, code)
            return data

        data = self._store.run_transaction(_take)
        if data is None:
            return None
        return AuthorizationCode.from_document(code, data)

    # Refresh tokens

    def create_refresh_token(self, record: RefreshToken) -> None:
        self._store.create(REFRESH_TOKENS, record.token, record.to_document())

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        return self._load(RefreshToken, REFRESH_TOKENS, token)

    def touch_refresh_token(self, token: str, refreshed_at: datetime) -> None:
        self._store.update(REFRESH_TOKENS, token, {"lastRefreshedAt": refreshed_at})

    def delete_refresh_token(self, token: str) -> None:
        self._store.delete(REFRESH_TOKENS, token)

    # Device recovery keys

    def create_recovery_key(self, record: DeviceRecoveryKey) -> None:
        self._store.create(DEVICE_RECOVERY_KEYS, record.key_hash, record.to_document())

    def get_recovery_key(self, key_hash: str) -> Optional[DeviceRecoveryKey]:
        return self._load(DeviceRecoveryKey, DEVICE_RECOVERY_KEYS, key_hash)

    def update_recovery_key(self, key_hash: str, fields: Dict[str, Any]) -> None:
        self._store.update(DEVICE_RECOVERY_KEYS, key_hash, fields)

    # Expiry

    def delete_many(self, collection: str, keys: Iterable[str]) -> int:
        return self._store.delete_many(collection, keys)


__all__ = ["CredentialStore", "EXPIRING_COLLECTIONS"]
