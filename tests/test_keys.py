try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from listlink.clients import AlreadyExistsError
from listlink.core.errors import ErrorCode, ServiceError
from listlink.utils.keys import (
    LINK_CODE_ALPHABET,
    RetryConfig,
    create_with_unique_key,
    generate_link_code,
    generate_token,
    hash_secret,
)


def test_link_codes_use_unambiguous_alphabet() -> None:
    assert len(LINK_CODE_ALPHABET) == 32
    assert not set("01OI") & set(LINK_CODE_ALPHABET)

    for _ in range(200):
        code = generate_link_code()
        assert len(code) == 6
        assert set(code) <= set(LINK_CODE_ALPHABET)


def test_tokens_are_hex_of_requested_length() -> None:
    assert len(generate_token(24)) == 48
    assert len(generate_token()) == 64
    int(generate_token(), 16)


def test_hash_secret_is_sha256_hex() -> None:
    assert hash_secret("abc") == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_create_with_unique_key_redraws_on_collision() -> None:
    taken = {"AAAAAA", "BBBBBB"}
    candidates = iter(["AAAAAA", "BBBBBB", "CCCCCC"])
    created = []

    def _create(key: str) -> None:
        if key in taken:
            raise AlreadyExistsError("alexaLinkCodes", key)
        created.append(key)

    result = create_with_unique_key(
        _create, lambda: next(candidates), exhausted_message="exhausted"
    )

    assert result == "CCCCCC"
    assert created == ["CCCCCC"]


def test_create_with_unique_key_gives_up_after_budget() -> None:
    attempts = []

    def _create(key: str) -> None:
        attempts.append(key)
        raise AlreadyExistsError("alexaLinkCodes", key)

    with pytest.raises(ServiceError) as excinfo:
        create_with_unique_key(_create, lambda: "SAME", exhausted_message="exhausted")

    assert excinfo.value.code is ErrorCode.RESOURCE_EXHAUSTED
    assert excinfo.value.message == "exhausted"
    assert len(attempts) == 5

    attempts.clear()
    with pytest.raises(ServiceError):
        create_with_unique_key(
            _create,
            lambda: "SAME",
            exhausted_message="exhausted",
            retry_config=RetryConfig(attempts=2),
        )
    assert len(attempts) == 2


def test_other_errors_are_not_retried() -> None:
    calls = []

    def _create(key: str) -> None:
        calls.append(key)
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        create_with_unique_key(_create, lambda: "X", exhausted_message="exhausted")
    assert calls == ["X"]
