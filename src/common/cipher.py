from __future__ import annotations

import base64
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import AuthenticationFailure, DecodeFailure


ENV_CIPHER_KEY = "ESCROW_CIPHER_KEY"

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit GCM nonce
_NONCE_PAD = b"\x00" * (NONCE_SIZE - 8)


def _decode_key(key: str | bytes) -> bytes:
    """Decode a URL-safe base64 key (str or bytes) into raw key bytes."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    try:
        return base64.urlsafe_b64decode(key)
    except (ValueError, TypeError) as ex:
        raise ValueError("Cipher key must be URL-safe base64-encoded") from ex


def derive_nonce(key_id: int) -> bytes:
    """Per-record nonce: 4 zero bytes followed by the big-endian key_id."""
    return _NONCE_PAD + int(key_id).to_bytes(8, "big")


class RecordCipher:
    """
    AES-256-GCM sealing of escrowed secrets.

    Notes
    - The output of `encrypt` is ciphertext with the 16-byte tag appended.
    - By default the nonce is derived from the record's key_id. Key ids are
      unique per store, so a nonce is never reused under the same key, and
      the same (key_id, plaintext) pair always seals to the same bytes.
    - Passing `nonce` pins one fixed nonce for every record. This exists only
      to read and reproduce records sealed by the legacy deployment.
    """

    def __init__(self, key: bytes, *, nonce: Optional[bytes] = None) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise ValueError(f"Cipher key must be exactly {KEY_SIZE} bytes")
        if nonce is not None and len(nonce) != NONCE_SIZE:
            raise ValueError(f"Fixed nonce must be exactly {NONCE_SIZE} bytes")
        self._aead = AESGCM(bytes(key))
        self._fixed_nonce = bytes(nonce) if nonce is not None else None

    # -------- Construction helpers --------
    @classmethod
    def from_encoded_key(cls, key: str | bytes) -> "RecordCipher":
        return cls(_decode_key(key))

    @classmethod
    def from_env(cls) -> "RecordCipher":
        raw = os.environ.get(ENV_CIPHER_KEY)
        if not raw:
            raise RuntimeError(f"Missing required configuration: {ENV_CIPHER_KEY}")
        return cls.from_encoded_key(raw)

    @staticmethod
    def generate_key() -> str:
        """Return a fresh URL-safe base64 key suitable for `from_encoded_key`."""
        return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")

    # -------- Core operations --------
    def _nonce_for(self, key_id: int) -> bytes:
        if self._fixed_nonce is not None:
            return self._fixed_nonce
        return derive_nonce(key_id)

    def encrypt(self, plaintext: str, key_id: int) -> bytes:
        return self._aead.encrypt(self._nonce_for(key_id), plaintext.encode("utf-8"), None)

    def decrypt(self, ciphertext: bytes, key_id: int) -> str:
        """Open a sealed secret.

        Raises:
        - AuthenticationFailure if the tag does not verify.
        - DecodeFailure if the plaintext is not valid UTF-8.
        """
        try:
            data = self._aead.decrypt(self._nonce_for(key_id), bytes(ciphertext), None)
        except InvalidTag as ex:
            raise AuthenticationFailure(f"Failed to authenticate ciphertext for key_id {key_id}") from ex
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise DecodeFailure(f"Decrypted data for key_id {key_id} is not valid UTF-8") from ex
