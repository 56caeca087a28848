"""Subset of the voice-assistant request/response envelope used by the skill webhook."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from .base import CamelModel


class _Envelope(CamelModel):
    model_config = ConfigDict(extra="ignore")


class AlexaApplication(_Envelope):
    application_id: Optional[str] = None


class AlexaUser(_Envelope):
    user_id: Optional[str] = None
    access_token: Optional[str] = None


class AlexaSystem(_Envelope):
    application: Optional[AlexaApplication] = None
    user: Optional[AlexaUser] = None


class AlexaContext(_Envelope):
    system: Optional[AlexaSystem] = Field(None, alias="System")


class AlexaSession(_Envelope):
    new: bool = False
    session_id: Optional[str] = None
    application: Optional[AlexaApplication] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    user: Optional[AlexaUser] = None


class AlexaSlot(_Envelope):
    name: str
    value: Optional[str] = None


class AlexaIntent(_Envelope):
    name: str
    slots: Dict[str, AlexaSlot] = Field(default_factory=dict)


class AlexaRequest(_Envelope):
    type: str
    request_id: Optional[str] = None
    locale: Optional[str] = None
    intent: Optional[AlexaIntent] = None
    reason: Optional[str] = None


class AlexaRequestEnvelope(_Envelope):
    version: str = "1.0"
    session: Optional[AlexaSession] = None
    context: Optional[AlexaContext] = None
    request: AlexaRequest

    @property
    def application_id(self) -> Optional[str]:
        system = self.context.system if self.context else None
        if system and system.application and system.application.application_id:
            return system.application.application_id
        if self.session and self.session.application:
            return self.session.application.application_id
        return None

    @property
    def access_token(self) -> Optional[str]:
        system = self.context.system if self.context else None
        if system and system.user and system.user.access_token:
            return system.user.access_token
        if self.session and self.session.user:
            return self.session.user.access_token
        return None

    def slot_value(self, name: str) -> Optional[str]:
        intent = self.request.intent
        if not intent or name not in intent.slots:
            return None
        return intent.slots[name].value


__all__ = [
    "AlexaApplication",
    "AlexaContext",
    "AlexaIntent",
    "AlexaRequest",
    "AlexaRequestEnvelope",
    "AlexaSession",
    "AlexaSlot",
    "AlexaSystem",
    "AlexaUser",
]
