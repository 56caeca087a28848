"""
Expiry cleanup for credentials and invites.

Runs on a schedule (see ``listlink.workers.cleanup_scheduler``) and on demand
through the maintenance endpoint. Every pass is bounded by the configured batch
size and is safe to repeat.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from listlink.clients.document_store import (
    Cursor,
    DocumentStore,
    StoredDocument,
    Transaction,
)
from listlink.core.config import MaintenanceSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import (
    AUTHORIZATION_CODES,
    INVITES,
    LINK_CODES,
    REFRESH_TOKENS,
    Invite,
)
from listlink.schemas import CleanupSummary
from listlink.services.credential_store import EXPIRING_COLLECTIONS, CredentialStore
from listlink.utils.time import Clock, utcnow

logger = logging.getLogger(__name__)

_SUMMARY_FIELD_BY_COLLECTION = {
    LINK_CODES: "link_codes_deleted",
    AUTHORIZATION_CODES: "authorization_codes_deleted",
    REFRESH_TOKENS: "refresh_tokens_deleted",
}


class CleanupService:
    """Deletes expired credentials and ages out invites."""

    def __init__(
        self,
        store: DocumentStore,
        settings: MaintenanceSettings,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._credentials = CredentialStore(store)
        self._settings = settings
        self._clock = clock

    def run_manual(self, token: Optional[str]) -> CleanupSummary:
        """Run a cleanup requested through the maintenance endpoint."""
        expected = self._settings.maintenance_token
        if not expected:
            raise ServiceError(
                ErrorCode.FAILED_PRECONDITION, "Maintenance token is not configured"
            )
        if not token or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Invalid maintenance token")
        return self.perform_cleanup()

    def perform_cleanup(self) -> CleanupSummary:
        now = self._clock()
        summary = CleanupSummary(started_at=now)

        grace_threshold = now - timedelta(minutes=self._settings.cleanup_grace_period_minutes)
        for collection in EXPIRING_COLLECTIONS:
            deleted = self._delete_expired(collection, grace_threshold)
            field = _SUMMARY_FIELD_BY_COLLECTION[collection]
            setattr(summary, field, getattr(summary, field) + deleted)

        expired, deleted = self._age_expired_invites(now)
        summary.invites_expired += expired
        summary.invites_deleted += deleted
        summary.invites_deleted += self._purge_inactive_invites(now)

        summary.finished_at = self._clock()
        logger.info(
            "Cleanup finished",
            extra={
                "link_codes_deleted": summary.link_codes_deleted,
                "authorization_codes_deleted": summary.authorization_codes_deleted,
                "refresh_tokens_deleted": summary.refresh_tokens_deleted,
                "invites_expired": summary.invites_expired,
                "invites_deleted": summary.invites_deleted,
            },
        )
        return summary

    def _delete_expired(self, collection: str, threshold: datetime) -> int:
        total = 0
        for page in self._pages(collection, "expiresAt", threshold):
            total += self._credentials.delete_many(collection, [doc.key for doc in page])
        if total:
            logger.info("Expired credentials deleted", extra={"collection": collection, "count": total})
        return total

    def _age_expired_invites(self, now: datetime) -> Tuple[int, int]:
        """Flip active invites past ``expiresAt`` to expired; delete those past retention."""
        retention_cutoff = now - timedelta(days=self._settings.invite_retention_days)
        expired_total = deleted_total = 0

        for page in self._pages(INVITES, "expiresAt", now):

            def _apply(txn: Transaction, page: List[StoredDocument] = page) -> Tuple[int, int]:
                expired = deleted = 0
                for doc in page:
                    data = txn.get(INVITES, doc.key)
                    if data is None:
                        continue
                    invite = Invite.from_document(doc.key, data)
                    if invite.expires_at is None or invite.expires_at >= now:
                        continue
                    if invite.expires_at <= retention_cutoff:
                        txn.delete(INVITES, doc.key)
                        deleted += 1
                    elif invite.status == "active":
                        txn.update(INVITES, doc.key, {"status": "expired", "expiredAt": now})
                        expired += 1
                return expired, deleted

            expired, deleted = self._store.run_transaction(_apply)
            expired_total += expired
            deleted_total += deleted
        return expired_total, deleted_total

    def _purge_inactive_invites(self, now: datetime) -> int:
        """Delete non-active invites with no activity since the retention cutoff."""
        retention_cutoff = now - timedelta(days=self._settings.invite_retention_days)
        deleted_total = 0

        for page in self._pages(INVITES, "createdAt", retention_cutoff):

            def _apply(txn: Transaction, page: List[StoredDocument] = page) -> int:
                deleted = 0
                for doc in page:
                    data = txn.get(INVITES, doc.key)
                    if data is None:
                        continue
                    invite = Invite.from_document(doc.key, data)
                    if invite.status == "active":
                        continue
                    last_activity = invite.last_activity_at
                    if last_activity is not None and last_activity < retention_cutoff:
                        txn.delete(INVITES, doc.key)
                        deleted += 1
                return deleted

            deleted_total += self._store.run_transaction(_apply)
        return deleted_total

    def _pages(self, collection: str, field: str, threshold: datetime):
        """Yield ``field``-ordered pages below ``threshold``, resuming by cursor."""
        batch_size = self._settings.cleanup_batch_size
        cursor: Optional[Cursor] = None
        while True:
            page = self._store.query_before(
                collection, field, threshold, limit=batch_size, start_after=cursor
            )
            if not page:
                return
            yield page
            if len(page) < batch_size:
                return
            cursor = page[-1].cursor(field)


__all__ = ["CleanupService"]
