"""Service layer exports."""

from .credential_store import EXPIRING_COLLECTIONS, CredentialStore
from .lists import ListService
from .token_sealing import TokenSealer
from .authorization import AuthorizationService, is_client_allowed
from .tokens import AccessTokenCodec, TokenService
from .link_codes import LinkCodeIssuer
from .device_recovery import DeviceRecoveryManager
from .invites import InviteService
from .cleanup import CleanupService
from .voice_skill import SkillResponse, VoiceSkill

__all__ = [
    "AccessTokenCodec",
    "AuthorizationService",
    "CleanupService",
    "CredentialStore",
    "DeviceRecoveryManager",
    "EXPIRING_COLLECTIONS",
    "InviteService",
    "LinkCodeIssuer",
    "ListService",
    "SkillResponse",
    "TokenSealer",
    "TokenService",
    "VoiceSkill",
    "is_client_allowed",
]
