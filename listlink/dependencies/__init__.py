"""Expose dependency helpers for FastAPI routers."""

from .auth import get_caller_uid
from .clients import (
    build_cleanup_service,
    build_document_store,
    get_access_token_codec,
    get_authorization_service,
    get_cleanup_service,
    get_credential_store,
    get_device_recovery_manager,
    get_document_store,
    get_invite_service,
    get_link_code_issuer,
    get_list_service,
    get_token_service,
    get_voice_skill,
)
from .config import get_app_settings

__all__ = [
    "build_cleanup_service",
    "build_document_store",
    "get_access_token_codec",
    "get_app_settings",
    "get_authorization_service",
    "get_caller_uid",
    "get_cleanup_service",
    "get_credential_store",
    "get_device_recovery_manager",
    "get_document_store",
    "get_invite_service",
    "get_link_code_issuer",
    "get_list_service",
    "get_token_service",
    "get_voice_skill",
]
