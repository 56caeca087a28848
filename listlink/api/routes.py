"""
Callable endpoints invoked by the authenticated web client.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends

from listlink.dependencies import (
    get_caller_uid,
    get_cleanup_service,
    get_device_recovery_manager,
    get_invite_service,
    get_link_code_issuer,
)
from listlink.schemas import (
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
from listlink.services import (
    CleanupService,
    DeviceRecoveryManager,
    InviteService,
    LinkCodeIssuer,
)

router = APIRouter()
logger = logging.getLogger(__name__)

CallerUid = Annotated[str, Depends(get_caller_uid)]


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/alexa/link-codes", response_model=LinkCodeIssued)
async def create_alexa_link_code(
    payload: CreateLinkCodeRequest,
    uid: CallerUid,
    issuer: Annotated[LinkCodeIssuer, Depends(get_link_code_issuer)],
) -> LinkCodeIssued:
    """Issue a link code for entry on the voice-assistant consent page."""
    return issuer.create_link_code(caller_uid=uid, list_id=payload.list_id)


@router.post("/device-recovery/register", response_model=DeviceRecoveryRegistration)
async def register_device_recovery(
    payload: RegisterDeviceRecoveryRequest,
    uid: CallerUid,
    manager: Annotated[DeviceRecoveryManager, Depends(get_device_recovery_manager)],
) -> DeviceRecoveryRegistration:
    return manager.register(
        caller_uid=uid, list_id=payload.list_id, existing_key=payload.recovery_key
    )


@router.post("/device-recovery/claim", response_model=DeviceRecoveryClaim)
async def claim_device_recovery(
    payload: ClaimDeviceRecoveryRequest,
    uid: CallerUid,
    manager: Annotated[DeviceRecoveryManager, Depends(get_device_recovery_manager)],
) -> DeviceRecoveryClaim:
    return manager.claim(
        caller_uid=uid,
        recovery_key=payload.recovery_key,
        display_name=payload.display_name,
    )


@router.post("/invites", response_model=InviteIssued)
async def create_invite(
    payload: CreateInviteRequest,
    uid: CallerUid,
    invites: Annotated[InviteService, Depends(get_invite_service)],
) -> InviteIssued:
    return invites.create_invite(caller_uid=uid, list_id=payload.list_id)


@router.post("/invites/accept", response_model=InviteAcceptance)
async def accept_invite(
    payload: AcceptInviteRequest,
    uid: CallerUid,
    invites: Annotated[InviteService, Depends(get_invite_service)],
) -> InviteAcceptance:
    return invites.accept_invite(
        caller_uid=uid,
        invite_code=payload.invite_code,
        display_name=payload.display_name,
    )


@router.post("/maintenance/cleanup", response_model=CleanupSummary)
async def run_maintenance_cleanup(
    payload: MaintenanceCleanupRequest,
    cleanup: Annotated[CleanupService, Depends(get_cleanup_service)],
) -> CleanupSummary:
    """Trigger a cleanup run; requires the shared maintenance token."""
    summary = cleanup.run_manual(payload.token)
    logger.info("Manual cleanup completed", extra={"total_deleted": summary.total_deleted})
    return summary


__all__ = ["router"]
