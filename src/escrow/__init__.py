"""
Record lifecycle for the secret escrow: Absent -> Stored -> Retrieved.
"""

from .context import BlockInfo, Deps, Env, MessageInfo
from .lifecycle import get_key_details, instantiate_config, retrieve_key, store_key

__all__ = [
    "BlockInfo",
    "Deps",
    "Env",
    "MessageInfo",
    "instantiate_config",
    "store_key",
    "retrieve_key",
    "get_key_details",
]
