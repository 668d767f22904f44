from pathlib import Path

import pytest

from wrapper_relayer.app.config import RelayerConfig, load_config
from wrapper_relayer.app.domain.errors import ConfigurationError

from tests.conftest import PRIVATE_KEY, VAULT, WRAPPED, make_config

ENV_VARS = (
    "APPCHAIN_RPC",
    "MAINNET_RPC",
    "VAULT_ADDRESS",
    "WRAPPED_ADDRESS",
    "RELAYER_PRIVATE_KEY",
    "POLL_INTERVAL_MS",
    "SQLITE_PATH",
    "CONFIRMATION_DEPTH",
    "MAX_ATTEMPTS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_missing_required_variables(clean_env):
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(_env_file=None)

    message = str(exc_info.value)
    assert "APPCHAIN_RPC" in message
    assert "RELAYER_PRIVATE_KEY" in message


def test_reads_environment(clean_env, tmp_path: Path):
    clean_env.setenv("APPCHAIN_RPC", "http://appchain.test")
    clean_env.setenv("MAINNET_RPC", "http://mainnet.test")
    clean_env.setenv("VAULT_ADDRESS", VAULT)
    clean_env.setenv("WRAPPED_ADDRESS", WRAPPED)
    clean_env.setenv("RELAYER_PRIVATE_KEY", PRIVATE_KEY)
    clean_env.setenv("POLL_INTERVAL_MS", "2500")
    clean_env.setenv("SQLITE_PATH", str(tmp_path / "state.db"))
    clean_env.setenv("CONFIRMATION_DEPTH", "6")

    config = load_config(_env_file=None)

    assert config.poll_interval_s == 2.5
    assert config.confirmation_depth == 6
    assert config.max_attempts == 10
    assert config.database_url == f"sqlite+aiosqlite:///{tmp_path / 'state.db'}"
    assert config.sync_database_url == f"sqlite:///{tmp_path / 'state.db'}"


def test_private_key_is_not_echoed(tmp_path: Path):
    config = make_config(tmp_path / "state.db")

    assert PRIVATE_KEY not in repr(config)
    assert config.relayer_private_key.get_secret_value() == PRIVATE_KEY


def test_addresses_are_checksummed(tmp_path: Path):
    lower = "0x" + "ab" * 20
    config = make_config(tmp_path / "state.db", VAULT_ADDRESS=lower)

    assert config.vault_address != lower
    assert config.vault_address.lower() == lower


@pytest.mark.parametrize(
    "overrides",
    [
        {"VAULT_ADDRESS": "not-an-address"},
        {"POLL_INTERVAL_MS": 0},
        {"MAX_ATTEMPTS": 0},
        {"CONFIRMATION_DEPTH": -1},
    ],
)
def test_invalid_values_rejected(clean_env, tmp_path: Path, overrides):
    values = {
        "APPCHAIN_RPC": "http://appchain.test",
        "MAINNET_RPC": "http://mainnet.test",
        "VAULT_ADDRESS": VAULT,
        "WRAPPED_ADDRESS": WRAPPED,
        "RELAYER_PRIVATE_KEY": PRIVATE_KEY,
        "POLL_INTERVAL_MS": 1000,
        "SQLITE_PATH": str(tmp_path / "state.db"),
        **overrides,
    }

    with pytest.raises(ConfigurationError):
        load_config(_env_file=None, **values)


def test_explicit_database_url_wins(tmp_path: Path):
    config = make_config(tmp_path / "state.db", database_url="sqlite+aiosqlite:///:memory:")

    assert config.database_url == "sqlite+aiosqlite:///:memory:"
    assert isinstance(config, RelayerConfig)
