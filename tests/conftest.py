"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from estudimen.auth.hashing import SecretHasher
from estudimen.auth.models import User
from estudimen.auth.session_authority import SessionAuthority
from estudimen.config.settings import Settings, load_settings
from estudimen.storage.memory import InMemoryRecordStore
from estudimen.vault import CredentialVault

TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdefghijklmnop"
TEST_ENCRYPTION_KEY = "test-encryption-key-0123456789abcdefghij"


class FakeClock:
    """Controllable UTC clock for expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the surrounding environment."""
    return load_settings(
        jwt_secret=TEST_JWT_SECRET,
        encryption_key=TEST_ENCRYPTION_KEY,
        db_type="memory",
        hash_time_cost=1,
        _env_file=None,
    )


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def hasher() -> SecretHasher:
    # Lowest cost keeps the suite fast
    return SecretHasher(time_cost=1)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def authority(store, hasher, clock) -> SessionAuthority:
    return SessionAuthority(
        store,
        secret_key=TEST_JWT_SECRET,
        access_token_ttl=timedelta(minutes=15),
        refresh_token_ttl=timedelta(days=7),
        hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
def sample_user() -> User:
    """Sample user; tests add it to the store when the store must know it."""
    return User(
        id="user-123",
        email="ana@example.com",
        name="Ana Estudiante",
        password_hash="not-a-real-hash",
    )


@pytest.fixture
def openai_key() -> str:
    """Well-formed 44-character OpenAI key."""
    return "sk-abcdEFGH1234ijklMNOP5678qrstUVWX9012yzABC"


@pytest.fixture
def gemini_key() -> str:
    """Well-formed Gemini key."""
    return "AIzaSyA1b2C3d4E5f6G7h8I9j0K_lMnOpQrStU"
