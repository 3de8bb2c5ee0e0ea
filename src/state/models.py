from __future__ import annotations

import base64
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator


U64_MAX = 2**64 - 1


class Config(BaseModel):
    """
    Deployment-wide singleton written once at instantiation.

    Fields
    - creator: account that instantiated the contract.
    - broadcast: free-form string, surfaced read-only on key inspection.
    """

    creator: str
    broadcast: str


class EncryptedRecord(BaseModel):
    """
    One escrowed secret and its metadata.

    Fields
    - key_id: handle the record is filed under (the store is keyed by it too).
    - creator: account that stored the secret.
    - recipient: designated receiver; recorded only, retrieval is not gated on it.
    - timestamp: host block time at store time, in nanoseconds.
    - retrieved: flips to True on the first retrieval and never back.
    - encrypted_data: AES-GCM ciphertext with the tag appended.

    Notes
    - In JSON, `encrypted_data` is standard base64 text.
    """

    key_id: int = Field(ge=0, le=U64_MAX)
    creator: str
    recipient: str
    timestamp: int = Field(default=0, ge=0)
    retrieved: bool = False
    encrypted_data: bytes = b""

    @field_validator("encrypted_data", mode="before")
    @classmethod
    def decode_base64(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except ValueError as ex:
                raise ValueError("encrypted_data must be base64") from ex
        return v

    @field_serializer("encrypted_data", when_used="json")
    def encode_base64(self, v: bytes) -> str:
        return base64.b64encode(v).decode("ascii")


class KeyDetails(EncryptedRecord):
    """Inspection view: a record joined with the singleton's broadcast string."""

    broadcast: str

    @classmethod
    def from_record(cls, record: EncryptedRecord, config: Config) -> "KeyDetails":
        return cls(**record.model_dump(), broadcast=config.broadcast)
