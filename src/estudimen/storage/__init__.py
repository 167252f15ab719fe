"""Storage package."""

from estudimen.storage.base import ApiKeyStorage, RecordStore, TokenStorage, UserStorage
from estudimen.storage.d1 import D1RecordStore
from estudimen.storage.factory import create_storage
from estudimen.storage.memory import InMemoryRecordStore
from estudimen.storage.sqlite import SQLiteRecordStore

__all__ = [
    "ApiKeyStorage",
    "D1RecordStore",
    "InMemoryRecordStore",
    "RecordStore",
    "SQLiteRecordStore",
    "TokenStorage",
    "UserStorage",
    "create_storage",
]
