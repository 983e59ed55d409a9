from __future__ import annotations

import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

# Ensure the project package is importable when tests run without an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from share_gateway.core.config import get_settings
from share_gateway.core.logging import configure_logging
from share_gateway.main import build_app
from tests.immich_fake import (
    IMMICH_URL,
    LOCKED_KEY,
    PASSWORD,
    PUBLIC_BASE_URL,
    SHARE_KEY,
    FakeImmich,
    make_asset,
)


@pytest.fixture(scope="session", autouse=True)
def test_env():
    """
    Session-scoped env setup. Can't use pytest's monkeypatch here because monkeypatch
    is function-scoped by default (ScopeMismatch). We manage os.environ manually.
    """
    old_env = os.environ.copy()

    os.environ["IMMICH_URL"] = IMMICH_URL
    os.environ["PUBLIC_BASE_URL"] = PUBLIC_BASE_URL
    os.environ["LOG_FORMAT"] = "text"
    os.environ["LOG_LEVEL"] = "WARNING"

    get_settings.cache_clear()
    # Importing the app already configured logging from the ambient environment
    settings = get_settings()
    configure_logging(log_level=settings.log_level, log_format=settings.log_format, force=True)
    yield
    os.environ.clear()
    os.environ.update(old_env)
    get_settings.cache_clear()


@pytest.fixture
def fake_immich() -> FakeImmich:
    fake = FakeImmich()
    fake.add_share(SHARE_KEY, [make_asset(1), make_asset(2), make_asset(3, "VIDEO", "clip.mp4")])
    fake.add_share(LOCKED_KEY, [make_asset(10)], password=PASSWORD)
    return fake


@pytest.fixture
def app(fake_immich):
    return build_app(transport=httpx.MockTransport(fake_immich.handler))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def override_settings(monkeypatch):
    """Set environment overrides for a single test and rebuild settings around it."""

    def apply(**values: str) -> None:
        for name, value in values.items():
            monkeypatch.setenv(name, value)
        get_settings.cache_clear()

    yield apply
    get_settings.cache_clear()
