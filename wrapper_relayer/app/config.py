"""Config file."""
from __future__ import annotations

from pathlib import Path

from eth_utils import is_address, to_checksum_address
from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wrapper_relayer.app.domain.errors import ConfigurationError


class RelayerConfig(BaseSettings):
    """Relayer settings, read from the environment (and `.env`)."""

    # CHAINS
    appchain_rpc: str = Field(..., alias="APPCHAIN_RPC")
    mainnet_rpc: str = Field(..., alias="MAINNET_RPC")
    vault_address: str = Field(..., alias="VAULT_ADDRESS")
    wrapped_address: str = Field(..., alias="WRAPPED_ADDRESS")

    # RELAYER
    relayer_private_key: SecretStr = Field(..., alias="RELAYER_PRIVATE_KEY")
    poll_interval_ms: int = Field(..., alias="POLL_INTERVAL_MS", gt=0)

    # DATABASE
    sqlite_path: Path = Field(..., alias="SQLITE_PATH")
    database_url: str | None = None
    sync_database_url: str | None = None

    # HARDENING
    confirmation_depth: int = Field(0, alias="CONFIRMATION_DEPTH", ge=0)
    max_block_range: int = Field(10_000, alias="MAX_BLOCK_RANGE", gt=0)
    retry_base_delay_ms: int = Field(10_000, alias="RETRY_BASE_DELAY_MS", ge=0)
    retry_max_delay_ms: int = Field(3_600_000, alias="RETRY_MAX_DELAY_MS", ge=0)
    max_attempts: int = Field(10, alias="MAX_ATTEMPTS", gt=0)
    tx_receipt_timeout_s: float = Field(180.0, alias="TX_RECEIPT_TIMEOUT_S", gt=0)
    reconcile_lookback_blocks: int = Field(50_000, alias="RECONCILE_LOOKBACK_BLOCKS", ge=0)
    rpc_timeout_s: float = Field(30.0, alias="RPC_TIMEOUT_S", gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("vault_address", "wrapped_address")
    @classmethod
    def checksum_address(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"not an EVM address: {value!r}")
        return to_checksum_address(value)

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "RelayerConfig":
        path = self.sqlite_path.expanduser()
        if not self.database_url:
            self.database_url = f"sqlite+aiosqlite:///{path}"
        if not self.sync_database_url:
            self.sync_database_url = f"sqlite:///{path}"
        return self

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000


def load_config(**overrides: object) -> RelayerConfig:
    """
    Build the relayer configuration from the environment.

    Any validation problem (missing variable, malformed address, ...) is
    re-raised as ConfigurationError so the CLI can exit fatally at startup.
    """
    try:
        return RelayerConfig(**overrides)
    except ValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid relayer configuration: {problems}") from exc
