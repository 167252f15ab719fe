"""SQL statements and row mapping shared by the SQLite and D1 backends.

Both speak the SQLite dialect with positional parameters. Timestamps are
stored as fixed-width UTC ISO-8601 strings so they compare correctly as text.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from estudimen.auth.models import RefreshTokenRecord, User
from estudimen.models.api_key import ApiKeyRecord, ApiProvider

SCHEMA_PATH = Path(__file__).parent / "migrations" / "init_schema.sql"

# Users
INSERT_USER = """
INSERT INTO users (id, email, name, password_hash, is_active, created_at)
VALUES (?, ?, ?, ?, ?, ?)
"""
SELECT_USER_BY_ID = "SELECT * FROM users WHERE id = ?"
SELECT_USER_BY_EMAIL = "SELECT * FROM users WHERE email = ?"
DEACTIVATE_USER = "UPDATE users SET is_active = 0 WHERE id = ?"

# Refresh tokens
INSERT_REFRESH_TOKEN = """
INSERT INTO refresh_tokens (token_id, user_id, token_hash, created_at, expires_at)
VALUES (?, ?, ?, ?, ?)
"""
SELECT_REFRESH_TOKEN = "SELECT * FROM refresh_tokens WHERE user_id = ? AND token_id = ?"
SELECT_USER_TOKENS = "SELECT * FROM refresh_tokens WHERE user_id = ? ORDER BY created_at DESC"
DELETE_REFRESH_TOKEN = "DELETE FROM refresh_tokens WHERE user_id = ? AND token_id = ?"
DELETE_USER_TOKENS = "DELETE FROM refresh_tokens WHERE user_id = ?"
DELETE_EXPIRED_TOKENS = "DELETE FROM refresh_tokens WHERE expires_at <= ?"

# API keys
INSERT_API_KEY = """
INSERT INTO api_keys (
    id, user_id, provider, encrypted_key, key_prefix,
    is_active, created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""
SELECT_API_KEYS = "SELECT * FROM api_keys WHERE user_id = ? ORDER BY created_at DESC"
SELECT_API_KEY = "SELECT * FROM api_keys WHERE user_id = ? AND id = ?"
SELECT_ACTIVE_API_KEY = """
SELECT * FROM api_keys
WHERE user_id = ? AND provider = ? AND is_active = 1
ORDER BY created_at DESC
LIMIT 1
"""
COUNT_ACTIVE_API_KEYS = "SELECT COUNT(*) AS total FROM api_keys WHERE user_id = ? AND is_active = 1"
DELETE_API_KEY = "DELETE FROM api_keys WHERE user_id = ? AND id = ?"


def to_db_time(value: datetime) -> str:
    """Serialize a datetime as fixed-width UTC text."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def user_params(user: User) -> tuple:
    return (
        user.id,
        user.email,
        user.name,
        user.password_hash,
        int(user.is_active),
        to_db_time(user.created_at),
    )


def token_params(record: RefreshTokenRecord) -> tuple:
    return (
        record.token_id,
        record.user_id,
        record.token_hash,
        to_db_time(record.created_at),
        to_db_time(record.expires_at),
    )


def api_key_params(record: ApiKeyRecord) -> tuple:
    return (
        record.id,
        record.user_id,
        record.provider.value,
        record.encrypted_key,
        record.key_prefix,
        int(record.is_active),
        to_db_time(record.created_at),
        to_db_time(record.updated_at),
    )


def row_to_user(row: Mapping) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        password_hash=row["password_hash"],
        is_active=bool(row["is_active"]),
        created_at=from_db_time(row["created_at"]),
    )


def row_to_token(row: Mapping) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        token_id=row["token_id"],
        user_id=row["user_id"],
        token_hash=row["token_hash"],
        created_at=from_db_time(row["created_at"]),
        expires_at=from_db_time(row["expires_at"]),
    )


def row_to_api_key(row: Mapping) -> ApiKeyRecord:
    return ApiKeyRecord(
        id=row["id"],
        user_id=row["user_id"],
        provider=ApiProvider(row["provider"]),
        encrypted_key=row["encrypted_key"],
        key_prefix=row["key_prefix"],
        is_active=bool(row["is_active"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
    )
