"""Caller identity for the callable endpoints."""

from typing import Optional

from fastapi import Header

from listlink.core.errors import ErrorCode, ServiceError


def get_caller_uid(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Return the uid asserted by the identity layer in ``X-User-Id``."""
    uid = (x_user_id or "").strip()
    if not uid:
        raise ServiceError(
            ErrorCode.UNAUTHENTICATED, "ログインした状態でアクセスしてください。"
        )
    return uid


__all__ = ["get_caller_uid"]
