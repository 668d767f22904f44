from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config as AlembicConfig

from wrapper_relayer.app.config import RelayerConfig


logger = logging.getLogger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parents[3] / "alembic"


def upgrade_to_head(config: RelayerConfig) -> None:
    """Apply every pending Alembic migration to the relayer database."""
    config.sqlite_path.expanduser().parent.mkdir(parents=True, exist_ok=True)

    alembic_cfg = AlembicConfig()
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", config.sync_database_url)

    logger.info("Migrating relayer database: %s", config.sqlite_path)
    command.upgrade(alembic_cfg, "head")
