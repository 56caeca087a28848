try:
    from . import _bootstrap  # noqa: F401
    from ._support import load_list, seed_list
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _support import load_list, seed_list  # type: ignore

import pytest

from listlink.core.errors import ErrorCode, ServiceError
from listlink.models.records import DEVICE_RECOVERY_KEYS, LISTS
from listlink.services import CredentialStore, DeviceRecoveryManager, ListService
from listlink.utils.keys import hash_secret


@pytest.fixture()
def manager(store, clock) -> DeviceRecoveryManager:
    seed_list(store, "list-1", members=["user-a"], name="Weekend")
    return DeviceRecoveryManager(
        CredentialStore(store), ListService(store, clock=clock), clock=clock
    )


def test_register_stores_only_the_hash(manager, store) -> None:
    registration = manager.register(caller_uid="user-a", list_id="list-1")

    secret = registration.recovery_key
    assert len(secret) == 64
    assert store.get(DEVICE_RECOVERY_KEYS, secret) is None
    record = store.get(DEVICE_RECOVERY_KEYS, hash_secret(secret))
    assert record["listId"] == "list-1"
    assert record["lastRegisteredBy"] == "user-a"
    assert record["disabled"] is False
    assert secret not in str(record)


def test_register_requires_membership(manager) -> None:
    with pytest.raises(ServiceError) as excinfo:
        manager.register(caller_uid="stranger", list_id="list-1")
    assert excinfo.value.code is ErrorCode.PERMISSION_DENIED


def test_register_reuses_valid_existing_key(manager, store, clock) -> None:
    first = manager.register(caller_uid="user-a", list_id="list-1")
    created_at = store.get(DEVICE_RECOVERY_KEYS, hash_secret(first.recovery_key))["createdAt"]
    clock.advance(days=1)

    again = manager.register(
        caller_uid="user-a", list_id="list-1", existing_key=first.recovery_key
    )

    assert again.recovery_key == first.recovery_key
    record = store.get(DEVICE_RECOVERY_KEYS, hash_secret(first.recovery_key))
    assert record["createdAt"] == created_at
    assert record["lastRegisteredAt"] > created_at


def test_register_mints_new_key_for_foreign_or_disabled_key(manager, store) -> None:
    seed_list(store, "list-2", members=["user-a"])
    foreign = manager.register(caller_uid="user-a", list_id="list-2")

    fresh = manager.register(
        caller_uid="user-a", list_id="list-1", existing_key=foreign.recovery_key
    )
    assert fresh.recovery_key != foreign.recovery_key

    store.update(DEVICE_RECOVERY_KEYS, hash_secret(fresh.recovery_key), {"disabled": True})
    replacement = manager.register(
        caller_uid="user-a", list_id="list-1", existing_key=fresh.recovery_key
    )
    assert replacement.recovery_key != fresh.recovery_key


def test_claim_adds_member_once(manager, store) -> None:
    secret = manager.register(caller_uid="user-a", list_id="list-1").recovery_key

    first = manager.claim(caller_uid="user-b", recovery_key=secret, display_name="Bea")
    assert first.list_id == "list-1"
    assert first.list_name == "Weekend"
    assert first.already_member is False
    shopping_list = load_list(store)
    assert shopping_list.members == ["user-a", "user-b"]
    assert shopping_list.member_profiles == {"user-b": "Bea"}

    second = manager.claim(caller_uid="user-b", recovery_key=secret)
    assert second.already_member is True
    assert load_list(store).members == ["user-a", "user-b"]

    record = store.get(DEVICE_RECOVERY_KEYS, hash_secret(secret))
    assert record["lastClaimedBy"] == "user-b"


def test_claim_disabled_key_fails_without_touching_list(manager, store) -> None:
    secret = manager.register(caller_uid="user-a", list_id="list-1").recovery_key
    store.update(DEVICE_RECOVERY_KEYS, hash_secret(secret), {"disabled": True})
    before = store.get(LISTS, "list-1")

    with pytest.raises(ServiceError) as excinfo:
        manager.claim(caller_uid="user-b", recovery_key=secret)

    assert excinfo.value.code is ErrorCode.FAILED_PRECONDITION
    assert store.get(LISTS, "list-1") == before


def test_claim_disables_key_when_list_is_gone(manager, store) -> None:
    secret = manager.register(caller_uid="user-a", list_id="list-1").recovery_key
    store.delete(LISTS, "list-1")

    with pytest.raises(ServiceError) as excinfo:
        manager.claim(caller_uid="user-b", recovery_key=secret)
    assert excinfo.value.code is ErrorCode.NOT_FOUND

    record = store.get(DEVICE_RECOVERY_KEYS, hash_secret(secret))
    assert record["disabled"] is True
    assert record["disabledReason"] == "list-not-found"

    with pytest.raises(ServiceError) as excinfo:
        manager.claim(caller_uid="user-b", recovery_key=secret)
    assert excinfo.value.code is ErrorCode.FAILED_PRECONDITION


def test_claim_unknown_or_missing_key(manager) -> None:
    with pytest.raises(ServiceError) as excinfo:
        manager.claim(caller_uid="user-b", recovery_key="nope")
    assert excinfo.value.code is ErrorCode.NOT_FOUND

    with pytest.raises(ServiceError) as excinfo:
        manager.claim(caller_uid="user-b", recovery_key="")
    assert excinfo.value.code is ErrorCode.INVALID_ARGUMENT


def test_register_and_claim_normalize_the_presented_key(manager, store) -> None:
    secret = manager.register(caller_uid="user-a", list_id="list-1").recovery_key

    again = manager.register(
        caller_uid="user-a", list_id="list-1", existing_key=f"  {secret}\n"
    )
    assert again.recovery_key == secret

    claimed = manager.claim(caller_uid="user-b", recovery_key=f" {secret} ")
    assert claimed.list_id == "list-1"
