"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from wrapper_relayer.app.application.services.relay_chain_events import ChainRelayService
from wrapper_relayer.app.application.services.retry_policy import BackoffPolicy
from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.domain.models import Chain
from wrapper_relayer.app.infrastructure.adapters.attempt_store import SqlAlchemyAttemptStore
from wrapper_relayer.app.infrastructure.adapters.cursor_store import SqlAlchemyCursorStore
from wrapper_relayer.app.infrastructure.adapters.event_store import SqlAlchemyEventStore
from wrapper_relayer.app.infrastructure.db.engine import create_app_async_engine, create_schema

from tests.fakes import FakeActionExecutor, FakeChainWatcher, FakeClock

VAULT = "0x1111111111111111111111111111111111111111"
WRAPPED = "0x2222222222222222222222222222222222222222"
# well-known test key (hardhat account #0); never funded on a real chain
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


def make_config(sqlite_path: Path, **overrides: object) -> RelayerConfig:
    values: dict[str, object] = {
        "APPCHAIN_RPC": "http://appchain.test",
        "MAINNET_RPC": "http://mainnet.test",
        "VAULT_ADDRESS": VAULT,
        "WRAPPED_ADDRESS": WRAPPED,
        "RELAYER_PRIVATE_KEY": PRIVATE_KEY,
        "POLL_INTERVAL_MS": 10,
        "SQLITE_PATH": str(sqlite_path),
    }
    values.update(overrides)
    return RelayerConfig(_env_file=None, **values)


@pytest.fixture
def config(tmp_path: Path) -> RelayerConfig:
    return make_config(tmp_path / "relayer.db")


@pytest_asyncio.fixture
async def db_engine(config: RelayerConfig) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the relayer schema."""
    engine = create_app_async_engine(config)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def event_store(db_engine: AsyncEngine) -> SqlAlchemyEventStore:
    return SqlAlchemyEventStore(engine=db_engine)


@pytest.fixture
def cursor_store(db_engine: AsyncEngine) -> SqlAlchemyCursorStore:
    return SqlAlchemyCursorStore(engine=db_engine)


@pytest.fixture
def attempt_store(db_engine: AsyncEngine) -> SqlAlchemyAttemptStore:
    return SqlAlchemyAttemptStore(engine=db_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backoff() -> BackoffPolicy:
    return BackoffPolicy.from_millis(base_delay_ms=10_000, max_delay_ms=3_600_000, max_attempts=3)


@pytest.fixture
def executor() -> FakeActionExecutor:
    return FakeActionExecutor()


@pytest.fixture
def appchain_watcher() -> FakeChainWatcher:
    return FakeChainWatcher(Chain.APPCHAIN)


@pytest.fixture
def mainnet_watcher() -> FakeChainWatcher:
    return FakeChainWatcher(Chain.MAINNET)


@pytest.fixture
def make_service(event_store, cursor_store, attempt_store, executor, backoff, clock):  # type: ignore[no-untyped-def]
    def _make(watcher: FakeChainWatcher, **overrides: object) -> ChainRelayService:
        kwargs: dict[str, object] = {
            "watcher": watcher,
            "event_store": event_store,
            "cursor_store": cursor_store,
            "attempt_store": attempt_store,
            "executor": executor,
            "locator": executor,
            "backoff": backoff,
            "clock": clock,
        }
        kwargs.update(overrides)
        return ChainRelayService(**kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def deposit_service(make_service, appchain_watcher) -> ChainRelayService:  # type: ignore[no-untyped-def]
    return make_service(appchain_watcher)


@pytest.fixture
def burn_service(make_service, mainnet_watcher) -> ChainRelayService:  # type: ignore[no-untyped-def]
    return make_service(mainnet_watcher)
