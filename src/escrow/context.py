from __future__ import annotations

from dataclasses import dataclass

from common.cipher import RecordCipher
from state.storage import KeyValueStorage


@dataclass(frozen=True)
class BlockInfo:
    height: int
    time: int = 0  # nanoseconds since epoch


@dataclass(frozen=True)
class Env:
    block: BlockInfo


@dataclass(frozen=True)
class MessageInfo:
    sender: str


@dataclass
class Deps:
    """Per-call dependencies: the storage context and the record cipher."""

    storage: KeyValueStorage
    cipher: RecordCipher
