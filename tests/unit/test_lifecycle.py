from __future__ import annotations

import pytest

from common.cipher import RecordCipher
from common.errors import AlreadyExists, AuthenticationFailure, NotFound
from escrow.context import BlockInfo, Deps, Env, MessageInfo
from escrow.lifecycle import get_key_details, instantiate_config, retrieve_key, store_key
from state.storage import MemoryStorage
from state.store import RecordStore


BROADCAST = "dear AI, keep going"


def _deps() -> Deps:
    return Deps(storage=MemoryStorage(), cipher=RecordCipher(b"k" * 32))


def _env(height: int = 12345, time: int = 1_571_797_419_879_305_533) -> Env:
    return Env(block=BlockInfo(height=height, time=time))


@pytest.fixture
def deps() -> Deps:
    d = _deps()
    instantiate_config(d, MessageInfo(sender="creator"), BROADCAST)
    return d


def test_store_retrieve_inspect_scenario(deps: Deps):
    info = MessageInfo(sender="creator")

    key_id = store_key(deps, _env(12345), info, "my_secret_key", "recipientX")
    assert key_id == 12345

    assert retrieve_key(deps, 12345) == "my_secret_key"

    details = get_key_details(deps, 12345)
    assert details.creator == "creator"
    assert details.recipient == "recipientX"
    assert details.retrieved is True
    assert details.broadcast == BROADCAST


def test_record_is_stored_encrypted_with_block_time(deps: Deps):
    store_key(deps, _env(7, time=42), MessageInfo(sender="alice"), "plain", "bob")
    record = RecordStore(deps.storage).load(7)
    assert record.key_id == 7
    assert record.timestamp == 42
    assert record.retrieved is False
    assert b"plain" not in record.encrypted_data


@pytest.mark.parametrize("secret", ["", "a" * 1000, "x", "emoji 🔑"])
def test_roundtrip_is_lossless(deps: Deps, secret: str):
    key_id = store_key(deps, _env(99), MessageInfo(sender="alice"), secret, "bob")
    assert retrieve_key(deps, key_id) == secret


def test_second_store_in_same_block_is_rejected(deps: Deps):
    env = _env(500)
    store_key(deps, env, MessageInfo(sender="alice"), "first", "bob")
    with pytest.raises(AlreadyExists):
        store_key(deps, env, MessageInfo(sender="mallory"), "second", "eve")

    record = RecordStore(deps.storage).load(500)
    assert record.creator == "alice"
    assert record.recipient == "bob"
    assert retrieve_key(deps, 500) == "first"


@pytest.mark.parametrize("key_id", [0, 1, 999, 2**64 - 1])
def test_retrieve_unknown_key_id_raises_not_found(deps: Deps, key_id: int):
    with pytest.raises(NotFound):
        retrieve_key(deps, key_id)


def test_inspect_unknown_key_id_raises_not_found(deps: Deps):
    with pytest.raises(NotFound):
        get_key_details(deps, 0)


def test_retrieved_flag_transitions_once_and_inspect_does_not_mutate(deps: Deps):
    store_key(deps, _env(10), MessageInfo(sender="alice"), "s", "bob")

    assert get_key_details(deps, 10).retrieved is False
    assert get_key_details(deps, 10).retrieved is False

    retrieve_key(deps, 10)
    assert get_key_details(deps, 10).retrieved is True


def test_re_retrieval_returns_same_plaintext(deps: Deps):
    store_key(deps, _env(10), MessageInfo(sender="alice"), "again", "bob")
    assert retrieve_key(deps, 10) == "again"
    assert retrieve_key(deps, 10) == "again"
    assert get_key_details(deps, 10).retrieved is True


def test_retrieval_only_flips_the_retrieved_flag(deps: Deps):
    store_key(deps, _env(10, time=77), MessageInfo(sender="alice"), "keep me", "bob")
    records = RecordStore(deps.storage)
    before = records.load(10)

    retrieve_key(deps, 10)
    after = records.load(10)
    assert after.model_dump(exclude={"retrieved"}) == before.model_dump(exclude={"retrieved"})
    assert after.encrypted_data == before.encrypted_data
    assert (before.retrieved, after.retrieved) == (False, True)


def test_inspect_keeps_ciphertext_sealed(deps: Deps):
    store_key(deps, _env(10), MessageInfo(sender="alice"), "hidden", "bob")
    details = get_key_details(deps, 10)
    assert details.encrypted_data == deps.cipher.encrypt("hidden", 10)


def test_retrieval_is_not_gated_on_recipient(deps: Deps):
    store_key(deps, _env(10), MessageInfo(sender="alice"), "s", "bob")
    # retrieve_key takes no caller; anyone holding the key_id can open it
    assert retrieve_key(deps, 10) == "s"


def test_cipher_failure_leaves_flag_unset(deps: Deps):
    store_key(deps, _env(10), MessageInfo(sender="alice"), "s", "bob")
    other = Deps(storage=deps.storage, cipher=RecordCipher(b"z" * 32))
    with pytest.raises(AuthenticationFailure):
        retrieve_key(other, 10)
    assert get_key_details(deps, 10).retrieved is False


def test_inspect_requires_config():
    d = _deps()
    store_key(d, _env(10), MessageInfo(sender="alice"), "s", "bob")
    with pytest.raises(NotFound):
        get_key_details(d, 10)


def test_block_height_out_of_range_rejected(deps: Deps):
    with pytest.raises(ValueError):
        store_key(deps, _env(2**64), MessageInfo(sender="alice"), "s", "bob")


def test_deployments_do_not_share_state():
    a, b = _deps(), _deps()
    store_key(a, _env(10), MessageInfo(sender="alice"), "s", "bob")
    with pytest.raises(NotFound):
        retrieve_key(b, 10)
