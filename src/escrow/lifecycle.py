from __future__ import annotations

import logging

from common.errors import AlreadyExists
from state.models import U64_MAX, Config, EncryptedRecord, KeyDetails
from state.store import ConfigStore, RecordStore

from .context import Deps, Env, MessageInfo


logger = logging.getLogger(__name__)


def _derive_key_id(env: Env) -> int:
    height = int(env.block.height)
    if not 0 <= height <= U64_MAX:
        raise ValueError(f"Block height out of u64 range: {height}")
    return height


def instantiate_config(deps: Deps, info: MessageInfo, broadcast: str) -> Config:
    """Write the deployment singleton with the caller as creator."""
    config = Config(creator=info.sender, broadcast=broadcast)
    ConfigStore(deps.storage).initialize(config)
    logger.info("Instantiated escrow; creator=%s", config.creator)
    return config


def store_key(deps: Deps, env: Env, info: MessageInfo, key: str, recipient: str) -> int:
    """
    Seal `key` and file it under the current block height.

    Two stores in the same block collide on the same key_id; the second one
    fails with AlreadyExists and the first record is left untouched.

    Returns: the key_id to retrieve the secret with.
    """
    key_id = _derive_key_id(env)
    records = RecordStore(deps.storage)
    if records.exists(key_id):
        raise AlreadyExists(f"Key already exists: {key_id}")

    record = EncryptedRecord(
        key_id=key_id,
        creator=info.sender,
        recipient=recipient,
        timestamp=env.block.time,
        retrieved=False,
        encrypted_data=deps.cipher.encrypt(key, key_id),
    )
    records.insert(key_id, record)
    logger.info("Stored key_id=%d creator=%s recipient=%s", key_id, info.sender, recipient)
    return key_id


def retrieve_key(deps: Deps, key_id: int) -> str:
    """
    Decrypt a stored secret and mark its record as retrieved.

    Retrieving again returns the same plaintext; `retrieved` stays True.
    Raises NotFound for an unknown key_id, AuthenticationFailure or
    DecodeFailure if the ciphertext does not open.
    """
    records = RecordStore(deps.storage)
    record = records.load(key_id)
    plaintext = deps.cipher.decrypt(record.encrypted_data, key_id)

    first = not record.retrieved
    record.retrieved = True
    records.overwrite(key_id, record)
    logger.info("Retrieved key_id=%d first=%s", key_id, first)
    return plaintext


def get_key_details(deps: Deps, key_id: int) -> KeyDetails:
    """Return the record (still encrypted) joined with the config broadcast."""
    record = RecordStore(deps.storage).load(key_id)
    config = ConfigStore(deps.storage).load()
    return KeyDetails.from_record(record, config)
