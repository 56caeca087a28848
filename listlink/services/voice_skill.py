"""
Voice skill request handling.

Maps an incoming voice request envelope to a spoken response. The only intent
with side effects is ``addItem``, which writes to the list resolved from the
linked access token.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from listlink.core.config import AlexaSettings
from listlink.core.errors import ErrorCode, ServiceError
from listlink.schemas import AccessTokenPayload, AlexaRequestEnvelope
from listlink.services.lists import ListService
from listlink.services.tokens import AccessTokenCodec

logger = logging.getLogger(__name__)

CARD_TITLE = "買い物リスト"


class SkillResponse:
    """Small builder for the voice response envelope."""

    def __init__(self, session_attributes: Optional[Dict[str, Any]] = None) -> None:
        self._session_attributes = dict(session_attributes or {})
        self._response: Dict[str, Any] = {}

    def speak(self, text: str) -> "SkillResponse":
        self._response["outputSpeech"] = {"type": "PlainText", "text": text}
        return self

    def reprompt(self, text: str) -> "SkillResponse":
        self._response["reprompt"] = {"outputSpeech": {"type": "PlainText", "text": text}}
        return self

    def simple_card(self, title: str, content: str) -> "SkillResponse":
        self._response["card"] = {"type": "Simple", "title": title, "content": content}
        return self

    def link_account_card(self) -> "SkillResponse":
        self._response["card"] = {"type": "LinkAccount"}
        return self

    def end_session(self, value: bool = True) -> "SkillResponse":
        self._response["shouldEndSession"] = value
        return self

    def set_attribute(self, name: str, value: Any) -> "SkillResponse":
        self._session_attributes[name] = value
        return self

    def build(self) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"version": "1.0", "response": self._response}
        if self._session_attributes:
            envelope["sessionAttributes"] = self._session_attributes
        return envelope


class VoiceSkill:
    """Dispatches voice requests to intent handlers."""

    def __init__(
        self,
        lists: ListService,
        codec: AccessTokenCodec,
        settings: AlexaSettings,
    ) -> None:
        self._lists = lists
        self._codec = codec
        self._settings = settings

    def handle(self, envelope: AlexaRequestEnvelope) -> Dict[str, Any]:
        """Produce the response envelope; rejects requests for another skill."""
        if self._settings.skill_id and envelope.application_id != self._settings.skill_id:
            logger.warning("Rejected voice request for unknown skill")
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Unexpected skill id")

        attributes = envelope.session.attributes if envelope.session else {}
        response = SkillResponse(attributes)
        try:
            return self._dispatch(envelope, response).build()
        except Exception:
            logger.exception("Voice skill error", extra={"request_type": envelope.request.type})
            return (
                SkillResponse(attributes)
                .speak("申し訳ありません。うまく処理できませんでした。もう一度お試しください。")
                .reprompt("追加したいアイテムを教えてください。")
                .build()
            )

    def _dispatch(self, envelope: AlexaRequestEnvelope, response: SkillResponse) -> SkillResponse:
        request = envelope.request
        if request.type == "LaunchRequest":
            logger.info("LaunchRequest reached handler")
            return response.speak("買い物リストへようこそ。アイテムを追加しますか？").reprompt("追加しますか？")
        if request.type == "SessionEndedRequest":
            logger.info("Voice session ended", extra={"reason": request.reason})
            return response
        if request.type != "IntentRequest" or request.intent is None:
            raise ValueError(f"Unhandled request type: {request.type}")

        intent = request.intent.name
        if intent == "addItem":
            return self._add_item(envelope, response)
        if intent == "AMAZON.HelpIntent":
            return response.speak(
                "例えば、牛乳を買い物リストに追加して、と話しかけてください。"
            ).reprompt("どのアイテムを追加しますか？")
        if intent in ("AMAZON.CancelIntent", "AMAZON.StopIntent"):
            return response.speak("またいつでもどうぞ。").end_session()
        if intent == "AMAZON.FallbackIntent":
            return response.speak(
                "すみません、買い物リストに追加したいアイテムを教えてください。"
            ).reprompt("何をリストに加えますか？")
        raise ValueError(f"Unhandled intent: {intent}")

    def _add_item(self, envelope: AlexaRequestEnvelope, response: SkillResponse) -> SkillResponse:
        item_name = (envelope.slot_value("shoppingItem") or "").strip()
        if not item_name:
            return response.speak("追加したいアイテムをもう一度教えてください。").reprompt(
                "何を買い物リストに加えますか？"
            )

        payload = self._codec.decode(envelope.access_token)
        list_id = self._resolve_list_id(envelope, payload, response)
        linked_uid = payload.uid if payload else None
        if not list_id:
            return response.speak(
                "買い物リストがまだリンクされていません。Alexaアプリでアカウントリンクを設定してください。"
            ).end_session()
        if not linked_uid:
            return response.speak(
                "買い物リストを利用するには、Alexaアプリでアカウントリンクを完了してください。"
            ).link_account_card()

        try:
            self._lists.add_item(list_id, item_name, linked_uid)
        except ServiceError as exc:
            logger.error(
                "Failed to add item from voice request",
                extra={"list_id": list_id, "uid": linked_uid, "error": exc.message},
            )
            return response.speak(
                "ごめんなさい。アイテムの追加に失敗しました。しばらくしてからもう一度お試しください。"
            )

        speech = f"{item_name} をリストに追加しました。"
        return response.speak(speech).simple_card(CARD_TITLE, speech).end_session()

    def _resolve_list_id(
        self,
        envelope: AlexaRequestEnvelope,
        payload: Optional[AccessTokenPayload],
        response: SkillResponse,
    ) -> Optional[str]:
        if payload and payload.list_id:
            return payload.list_id
        attributes = envelope.session.attributes if envelope.session else {}
        if attributes.get("listId"):
            return str(attributes["listId"])
        if self._settings.default_list_id:
            response.set_attribute("listId", self._settings.default_list_id)
            return self._settings.default_list_id
        return None


__all__ = ["SkillResponse", "VoiceSkill"]
