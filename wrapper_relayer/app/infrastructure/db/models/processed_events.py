from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, PrimaryKeyConstraint, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from wrapper_relayer.app.infrastructure.db.db_base import BaseDB


class ProcessedEventDB(BaseDB):
    """
    Idempotency ledger of source-chain events that have been relayed.

    Each row proves that one Deposited/Burned log, uniquely identified by
    (chain, tx_hash, log_index), was actioned exactly once on the
    counterpart chain. Rows are append-only: the relayer never updates or
    deletes them, so the table doubles as a permanent audit trail.

    Hashes and ids are stored as lowercase 0x-prefixed hex text.
    """

    __tablename__ = "processed_events"
    __table_args__ = (
        # Natural primary key: the correctness guarantee against double-relaying
        PrimaryKeyConstraint("chain", "tx_hash", "log_index"),

        # Lookup of already linked counterpart transactions
        Index(
            "ix_processed_events_type_target",
            "event_type",
            "target_tx_hash",
        ),

        # Audit lookups by asset
        Index(
            "ix_processed_events_ethscription_id",
            "ethscription_id",
        ),
    )

    # -------------------------------------------------------------------------
    # Source log identity
    # -------------------------------------------------------------------------

    """Source chain name ("appchain" | "mainnet")."""
    chain: Mapped[str] = mapped_column(Text, nullable=False)

    """Hash of the source transaction that emitted the log."""
    tx_hash: Mapped[str] = mapped_column(Text, nullable=False)

    """Index of the log within its block."""
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # -------------------------------------------------------------------------
    # Relay outcome
    # -------------------------------------------------------------------------

    """"deposit" (Deposited -> mint) or "burn" (Burned -> withdraw)."""
    event_type: Mapped[str] = mapped_column(Text, nullable=False)

    """bytes32 ethscription id, the join key between both chains."""
    ethscription_id: Mapped[str] = mapped_column(Text, nullable=False)

    """Confirmed counterpart transaction (mint on mainnet / withdraw on appchain)."""
    target_tx_hash: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
    )
