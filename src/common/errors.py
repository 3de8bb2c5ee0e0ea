from __future__ import annotations


class EscrowError(RuntimeError):
    """Base error for escrow operations. Every subclass fails the current call."""


class NotFound(EscrowError):
    """A config or record that was never created was requested."""


class AlreadyExists(EscrowError):
    """A store targeted an occupied key_id (or a second instantiate)."""


class AuthenticationFailure(EscrowError):
    """Ciphertext tag did not verify (tampered data or wrong key)."""


class DecodeFailure(EscrowError):
    """Decrypted bytes are not valid UTF-8 text."""
