# ==============================
# Testing Fixtures
# ==============================
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from broker.app import build_dispatcher
from broker.config.schema import NeonConfig, Settings, StoreConfig
from broker.operations.dispatcher import Dispatcher
from tests.fakes import (
    NEON_BASE,
    NEON_KEY,
    STORE_URL,
    CountingConnector,
    FakeSession,
    FakeStore,
    make_neon_manager,
    make_store_manager,
)


# ==============================
# Fixtures
# ==============================
@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def store_connector(fake_store: FakeStore) -> CountingConnector:
    return CountingConnector(fake_store)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def settings() -> Settings:
    """Configured store + control plane; SCAN pages of 3 keys."""
    return Settings(
        store=StoreConfig(url=STORE_URL, page_size=3, list_limit=100),
        neon=NeonConfig(api_key=NEON_KEY, base_url=NEON_BASE),
    )


@pytest.fixture
def dispatcher(settings: Settings, store_connector: CountingConnector, fake_session: FakeSession) -> Dispatcher:
    """Full catalog wired to the fakes; no network."""
    return build_dispatcher(
        settings,
        resources=[make_store_manager(store_connector), make_neon_manager(fake_session)],
    )


@pytest.fixture
def unconfigured_dispatcher() -> Dispatcher:
    """Full catalog with neither REDIS_URL nor NEON_API_KEY."""
    return build_dispatcher(Settings())
