from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from wrapper_relayer.app.infrastructure.db.db_base import BaseDB


class EventAttemptDB(BaseDB):
    """
    Retry bookkeeping for source events whose counterpart action failed.

    Unlike processed_events this table is mutable operational state: the
    attempt counter, backoff deadline and status move as retries happen.
    A "stuck" row is a terminal outcome that needs an operator.
    """

    __tablename__ = "event_attempts"
    __table_args__ = (
        PrimaryKeyConstraint("chain", "tx_hash", "log_index"),
        # Operator view: stuck events per chain
        Index("ix_event_attempts_status_chain", "status", "chain"),
    )

    # -------------------------------------------------------------------------
    # Source log identity (same key as processed_events)
    # -------------------------------------------------------------------------
    chain: Mapped[str] = mapped_column(Text, nullable=False)
    tx_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # -------------------------------------------------------------------------
    # Event payload, kept so stuck events can be retried without a rescan
    # -------------------------------------------------------------------------
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    ethscription_id: Mapped[str] = mapped_column(Text, nullable=False)
    account: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # -------------------------------------------------------------------------
    # Retry state
    # -------------------------------------------------------------------------
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # "retrying" | "stuck" | "resolved"
    status: Mapped[str] = mapped_column(Text, nullable=False)

    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Earliest time the next attempt may run (UTC); NULL for stuck/resolved
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
