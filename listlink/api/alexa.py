"""Voice skill webhook."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends

from listlink.dependencies import get_voice_skill
from listlink.schemas import AlexaRequestEnvelope
from listlink.services import VoiceSkill

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/alexa")
async def handle_voice_request(
    envelope: AlexaRequestEnvelope,
    skill: Annotated[VoiceSkill, Depends(get_voice_skill)],
) -> Dict[str, Any]:
    logger.info("Voice request received", extra={"request_type": envelope.request.type})
    return skill.handle(envelope)


__all__ = ["router"]
