from __future__ import annotations

import json
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from common.errors import AlreadyExists, NotFound

from .models import U64_MAX, Config, EncryptedRecord
from .storage import KeyValueStorage


CONFIG_KEY = b"config"
RECORDS_NAMESPACE = b"encrypted_keys"

M = TypeVar("M", bound=BaseModel)


def _namespaced(namespace: bytes, suffix: bytes) -> bytes:
    # 2-byte big-endian length prefix keeps namespaces from overlapping
    return len(namespace).to_bytes(2, "big") + namespace + suffix


def record_key(key_id: int) -> bytes:
    if not 0 <= key_id <= U64_MAX:
        raise ValueError(f"key_id out of u64 range: {key_id}")
    return _namespaced(RECORDS_NAMESPACE, key_id.to_bytes(8, "big"))


def _dump_json(model: BaseModel) -> bytes:
    # Deterministic JSON: stable key order, no extra whitespace
    return json.dumps(model.model_dump(mode="json"), separators=(",", ":"), sort_keys=True).encode("utf-8")


def _load_json(model_cls: Type[M], data: bytes) -> M:
    try:
        return model_cls.model_validate_json(data)
    except ValidationError as ex:
        raise ValueError(f"Failed to parse stored {model_cls.__name__}") from ex


class RecordStore:
    """
    Keyed map from key_id to `EncryptedRecord`. No secondary indices.

    Uniqueness is the caller's job; `insert` also guards against overwriting.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def exists(self, key_id: int) -> bool:
        return self._storage.has(record_key(key_id))

    def insert(self, key_id: int, record: EncryptedRecord) -> None:
        if self.exists(key_id):
            raise AlreadyExists(f"Key already exists: {key_id}")
        self._storage.set(record_key(key_id), _dump_json(record))

    def load(self, key_id: int) -> EncryptedRecord:
        data = self._storage.get(record_key(key_id))
        if data is None:
            raise NotFound(f"EncryptedRecord not found: {key_id}")
        return _load_json(EncryptedRecord, data)

    def overwrite(self, key_id: int, record: EncryptedRecord) -> None:
        if not self.exists(key_id):
            raise NotFound(f"EncryptedRecord not found: {key_id}")
        self._storage.set(record_key(key_id), _dump_json(record))


class ConfigStore:
    """Single-slot store for the deployment `Config`."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def exists(self) -> bool:
        return self._storage.has(CONFIG_KEY)

    def initialize(self, config: Config) -> None:
        self._storage.set(CONFIG_KEY, _dump_json(config))

    def load(self) -> Config:
        data = self._storage.get(CONFIG_KEY)
        if data is None:
            raise NotFound("Config not found")
        return _load_json(Config, data)
