"""
Common utilities for the secret escrow.

Modules:
- cipher: AES-256-GCM sealing of escrowed secrets
- errors: escrow error taxonomy (NotFound, AlreadyExists, cipher failures)
"""

__all__ = [
    "cipher",
    "errors",
]
