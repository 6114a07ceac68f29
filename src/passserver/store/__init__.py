"""Discovery, armoring and encryption of a pass-style password store."""

from .armor import ArmorError, armor, dearmor
from .cache import CacheState, SecretCache, Snapshot
from .encryptor import GPGIndexEncryptor, IndexEncryptor, get_index_encryptor, serialize_index
from .normalize import normalize_username
from .paths import IndexItem, SecretIdentifier, StoreEntry, decompose, order_index, walk_store
from .recipients import read_recipients

__all__ = [
    "ArmorError",
    "CacheState",
    "GPGIndexEncryptor",
    "IndexEncryptor",
    "IndexItem",
    "SecretCache",
    "SecretIdentifier",
    "Snapshot",
    "StoreEntry",
    "armor",
    "dearmor",
    "decompose",
    "get_index_encryptor",
    "normalize_username",
    "order_index",
    "read_recipients",
    "serialize_index",
    "walk_store",
]
