"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from social_publisher.core.config import AppSettings, PublisherSettings, TelegramSettings
from social_publisher.models.connection import Owner
from social_publisher.services.connection_store import ConnectionStore
from social_publisher.services.token_cipher import TokenCipherService


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="store-secret")


@pytest.fixture
def store(tmp_path, cipher) -> ConnectionStore:
    return ConnectionStore(str(tmp_path / "connections.db"), cipher=cipher)


@pytest.fixture
def owner() -> Owner:
    return Owner(type="user", id="U1")


@pytest.fixture
def settings() -> AppSettings:
    """Settings with zero backoff and no Telegram bot configured."""
    return AppSettings(
        publisher=PublisherSettings(retry_attempts=3, retry_backoff=0),
        telegram=TelegramSettings(bot_token=None, chat_id=None),
    )
