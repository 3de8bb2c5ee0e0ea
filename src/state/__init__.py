"""
State models, key-value storage backends and typed stores.

Records and the config singleton are serialized as deterministic JSON and
written to a host-supplied key-value storage (in-memory, or S3 objects).
"""

from .models import Config, EncryptedRecord, KeyDetails
from .storage import BufferedStorage, KeyValueStorage, MemoryStorage, transaction
from .store import ConfigStore, RecordStore

__all__ = [
    "Config",
    "EncryptedRecord",
    "KeyDetails",
    "KeyValueStorage",
    "MemoryStorage",
    "BufferedStorage",
    "transaction",
    "ConfigStore",
    "RecordStore",
]
