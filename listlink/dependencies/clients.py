"""
Factory functions to provide the document store and services as FastAPI dependencies.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from listlink.clients import DocumentStore, DynamoDBDocumentStore, SQLiteDocumentStore
from listlink.core.config import AppSettings, StoreSettings, get_settings
from listlink.services import (
    AccessTokenCodec,
    AuthorizationService,
    CleanupService,
    CredentialStore,
    DeviceRecoveryManager,
    InviteService,
    LinkCodeIssuer,
    ListService,
    TokenService,
    VoiceSkill,
)

from .config import get_app_settings

Settings = Annotated[AppSettings, Depends(get_app_settings)]


def build_document_store(settings: StoreSettings) -> DocumentStore:
    """Construct the configured backend."""
    if settings.backend == "dynamodb":
        return DynamoDBDocumentStore(settings)
    return SQLiteDocumentStore(settings.db_path)


@lru_cache()
def get_document_store() -> DocumentStore:
    """Provide the shared document store."""
    return build_document_store(get_settings().store)


Store = Annotated[DocumentStore, Depends(get_document_store)]


def get_credential_store(store: Store) -> CredentialStore:
    return CredentialStore(store)


def get_list_service(store: Store) -> ListService:
    return ListService(store)


def get_access_token_codec(settings: Settings) -> AccessTokenCodec:
    return AccessTokenCodec.from_settings(settings.alexa)


def get_link_code_issuer(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    lists: Annotated[ListService, Depends(get_list_service)],
    settings: Settings,
) -> LinkCodeIssuer:
    return LinkCodeIssuer(credentials, lists, settings.alexa)


def get_authorization_service(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    settings: Settings,
) -> AuthorizationService:
    return AuthorizationService(credentials, settings.alexa)


def get_token_service(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    codec: Annotated[AccessTokenCodec, Depends(get_access_token_codec)],
    settings: Settings,
) -> TokenService:
    return TokenService(credentials, settings.alexa, codec)


def get_device_recovery_manager(
    credentials: Annotated[CredentialStore, Depends(get_credential_store)],
    lists: Annotated[ListService, Depends(get_list_service)],
) -> DeviceRecoveryManager:
    return DeviceRecoveryManager(credentials, lists)


def get_invite_service(
    store: Store,
    lists: Annotated[ListService, Depends(get_list_service)],
    settings: Settings,
) -> InviteService:
    return InviteService(store, lists, settings.maintenance)


def build_cleanup_service(store: DocumentStore, settings: AppSettings) -> CleanupService:
    return CleanupService(store, settings.maintenance)


def get_cleanup_service(store: Store, settings: Settings) -> CleanupService:
    """Provide the cleanup service used by the maintenance endpoint."""
    return build_cleanup_service(store, settings)


def get_voice_skill(
    lists: Annotated[ListService, Depends(get_list_service)],
    codec: Annotated[AccessTokenCodec, Depends(get_access_token_codec)],
    settings: Settings,
) -> VoiceSkill:
    return VoiceSkill(lists, codec, settings.alexa)


__all__ = [
    "build_cleanup_service",
    "build_document_store",
    "get_access_token_codec",
    "get_authorization_service",
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
