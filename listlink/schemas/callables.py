"""Request and response bodies for operations invoked by the web client."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CamelModel


class CreateLinkCodeRequest(CamelModel):
    list_id: Optional[str] = None


class LinkCodeIssued(CamelModel):
    code: str
    expires_at: datetime
    ttl_minutes: int


class RegisterDeviceRecoveryRequest(CamelModel):
    list_id: Optional[str] = None
    recovery_key: Optional[str] = Field(
        None, description="Previously issued secret to keep using, when still valid."
    )


class DeviceRecoveryRegistration(CamelModel):
    list_id: str
    recovery_key: str


class ClaimDeviceRecoveryRequest(CamelModel):
    recovery_key: Optional[str] = None
    display_name: Optional[str] = Field(None, max_length=80)


class DeviceRecoveryClaim(CamelModel):
    list_id: str
    list_name: str
    already_member: bool


class CreateInviteRequest(CamelModel):
    list_id: Optional[str] = None


class InviteIssued(CamelModel):
    invite_code: str
    list_id: str
    expires_at: datetime


class AcceptInviteRequest(CamelModel):
    invite_code: Optional[str] = None
    display_name: Optional[str] = Field(None, max_length=80)


class InviteAcceptance(CamelModel):
    list_id: str
    already_member: bool


class MaintenanceCleanupRequest(CamelModel):
    token: Optional[str] = None


class CleanupSummary(CamelModel):
    """Counts produced by one cleanup run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    link_codes_deleted: int = 0
    authorization_codes_deleted: int = 0
    refresh_tokens_deleted: int = 0
    invites_expired: int = 0
    invites_deleted: int = 0

    @property
    def total_deleted(self) -> int:
        return (
            self.link_codes_deleted
            + self.authorization_codes_deleted
            + self.refresh_tokens_deleted
            + self.invites_deleted
        )


__all__ = [
    "AcceptInviteRequest",
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
    "RegisterDeviceRecoveryRequest",
]
