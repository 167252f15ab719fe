"""Storage factory for creating record store instances."""

from estudimen.config.settings import Settings
from estudimen.exceptions import ConfigurationError
from estudimen.storage.base import RecordStore
from estudimen.storage.d1 import D1RecordStore
from estudimen.storage.memory import InMemoryRecordStore
from estudimen.storage.sqlite import SQLiteRecordStore


def create_storage(settings: Settings) -> RecordStore:
    """Create a record store based on configuration.

    Args:
        settings: Application settings.

    Returns:
        RecordStore instance (memory, SQLite or D1).

    Raises:
        ConfigurationError: If the database type is unsupported or incomplete.
    """
    db_type = settings.db_type.lower()

    if db_type == "memory":
        return InMemoryRecordStore()

    if db_type == "sqlite":
        return SQLiteRecordStore(settings.db_path)

    if db_type == "d1":
        if not (settings.d1_account_id and settings.d1_database_id and settings.d1_api_token):
            raise ConfigurationError(
                "D1_ACCOUNT_ID, D1_DATABASE_ID and D1_API_TOKEN are required when DB_TYPE=d1"
            )
        return D1RecordStore(
            account_id=settings.d1_account_id,
            database_id=settings.d1_database_id,
            api_token=settings.d1_api_token.get_secret_value(),
        )

    raise ConfigurationError(
        f"Unsupported database type: {db_type}. Supported types: memory, sqlite, d1"
    )
