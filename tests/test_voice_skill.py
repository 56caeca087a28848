try:
    from . import _bootstrap  # noqa: F401
    from ._support import seed_list
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _support import seed_list  # type: ignore

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from listlink.core.config import AlexaSettings, AppSettings, MaintenanceSettings
from listlink.main import app
from listlink.models.records import list_items_collection
from listlink.services import AccessTokenCodec

pytestmark = pytest.mark.anyio("asyncio")

SKILL_ID = "amzn1.ask.skill.test"


@pytest.fixture()
def settings() -> AppSettings:
    return AppSettings(
        alexa=AlexaSettings(ALEXA_CLIENT_ID="alexa-client", ALEXA_SKILL_ID=SKILL_ID),
        maintenance=MaintenanceSettings(CLEANUP_SCHEDULER_ENABLED=False),
    )


@pytest.fixture()
async def client(store, settings):
    from listlink import dependencies

    seed_list(store, "list-1", members=["user-a"])
    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_document_store: lambda: store,
            dependencies.get_app_settings: lambda: settings,
        }
    )
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _envelope(request: dict, *, access_token=None, skill_id=SKILL_ID, attributes=None) -> dict:
    system = {"application": {"applicationId": skill_id}, "user": {"userId": "amzn-user"}}
    if access_token:
        system["user"]["accessToken"] = access_token
    return {
        "version": "1.0",
        "session": {"new": True, "sessionId": "s-1", "attributes": attributes or {}},
        "context": {"System": system},
        "request": {"requestId": "r-1", "locale": "ja-JP", **request},
    }


def _add_item(item: str = "牛乳") -> dict:
    return {
        "type": "IntentRequest",
        "intent": {"name": "addItem", "slots": {"shoppingItem": {"name": "shoppingItem", "value": item}}},
    }


def _items(store) -> list:
    far_future = datetime.now(timezone.utc) + timedelta(days=365)
    return store.query_before(list_items_collection("list-1"), "createdAt", far_future, limit=10)


async def test_launch_request_greets(client) -> None:
    response = await client.post("/alexa", json=_envelope({"type": "LaunchRequest"}))

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == "1.0"
    assert body["response"]["outputSpeech"]["text"].startswith("買い物リストへようこそ")
    assert "reprompt" in body["response"]


async def test_add_item_with_linked_token_writes_item(client, store, settings) -> None:
    token = AccessTokenCodec.from_settings(settings.alexa).issue(uid="user-a", list_id="list-1")

    response = await client.post("/alexa", json=_envelope(_add_item(" 牛乳 "), access_token=token))

    body = response.json()["response"]
    assert body["outputSpeech"]["text"] == "牛乳 をリストに追加しました。"
    assert body["card"]["type"] == "Simple"
    assert body["shouldEndSession"] is True

    (item,) = _items(store)
    assert item.data["name"] == "牛乳"
    assert item.data["source"] == "alexa"
    assert item.data["createdBy"] == "user-a"
    assert item.data["completed"] is False


async def test_add_item_without_link_asks_for_account_linking(client, store, settings) -> None:
    settings.alexa.default_list_id = "list-1"

    response = await client.post("/alexa", json=_envelope(_add_item()))

    body = response.json()
    assert body["response"]["card"] == {"type": "LinkAccount"}
    assert body["sessionAttributes"] == {"listId": "list-1"}
    assert _items(store) == []


async def test_add_item_without_any_list_ends_session(client, store) -> None:
    response = await client.post("/alexa", json=_envelope(_add_item()))

    body = response.json()["response"]
    assert "リンクされていません" in body["outputSpeech"]["text"]
    assert body["shouldEndSession"] is True


async def test_add_item_with_empty_slot_reprompts(client, store, settings) -> None:
    token = AccessTokenCodec.from_settings(settings.alexa).issue(uid="user-a", list_id="list-1")

    response = await client.post("/alexa", json=_envelope(_add_item("  "), access_token=token))

    body = response.json()["response"]
    assert "reprompt" in body
    assert _items(store) == []


async def test_add_item_for_non_member_reports_failure(client, store, settings) -> None:
    token = AccessTokenCodec.from_settings(settings.alexa).issue(uid="user-z", list_id="list-1")

    response = await client.post("/alexa", json=_envelope(_add_item(), access_token=token))

    assert response.status_code == 200
    assert "失敗しました" in response.json()["response"]["outputSpeech"]["text"]
    assert _items(store) == []


async def test_stop_intent_ends_session(client) -> None:
    request = {"type": "IntentRequest", "intent": {"name": "AMAZON.StopIntent"}}

    response = await client.post("/alexa", json=_envelope(request))

    assert response.json()["response"]["shouldEndSession"] is True


async def test_unknown_intent_answers_with_apology(client) -> None:
    request = {"type": "IntentRequest", "intent": {"name": "OrderPizza"}}

    response = await client.post("/alexa", json=_envelope(request))

    assert response.status_code == 200
    assert response.json()["response"]["outputSpeech"]["text"].startswith("申し訳ありません")


async def test_request_for_other_skill_is_rejected(client) -> None:
    response = await client.post(
        "/alexa", json=_envelope({"type": "LaunchRequest"}, skill_id="amzn1.ask.skill.other")
    )

    assert response.status_code == 403
    assert response.json()["error"]["status"] == "PERMISSION_DENIED"
