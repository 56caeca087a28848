"""Public schema exports."""

from .alexa import AlexaRequestEnvelope
from .callables import (
    AcceptInviteRequest,
    ClaimDeviceRecoveryRequest,
    CleanupSummary,
    CreateInviteRequest,
    CreateLinkCodeRequest,
    DeviceRecoveryClaim,
    DeviceRecoveryRegistration,
    InviteAcceptance,
    InviteIssued,
    LinkCodeIssued,
    MaintenanceCleanupRequest,
    RegisterDeviceRecoveryRequest,
)
from .oauth import (
    AccessTokenPayload,
    AuthorizeParams,
    OAuthErrorResponse,
    TokenRequest,
    TokenResponse,
)

__all__ = [
    "AcceptInviteRequest",
    "AccessTokenPayload",
    "AlexaRequestEnvelope",
    "AuthorizeParams",
    "ClaimDeviceRecoveryRequest",
    "CleanupSummary",
    "CreateInviteRequest",
    "CreateLinkCodeRequest",
    "DeviceRecoveryClaim",
    "DeviceRecoveryRegistration",
    "InviteAcceptance",
    "InviteIssued",
    "LinkCodeIssued",
    "MaintenanceCleanupRequest",
    "OAuthErrorResponse",
    "RegisterDeviceRecoveryRequest",
    "TokenRequest",
    "TokenResponse",
]
