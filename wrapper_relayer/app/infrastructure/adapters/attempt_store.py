from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from wrapper_relayer.app.domain.errors import PersistenceError
from wrapper_relayer.app.domain.models import (
    AttemptStatus,
    Chain,
    EventAttempt,
    EventType,
    ObservedEvent,
)
from wrapper_relayer.app.infrastructure.adapters._sqlite import as_utc, utc_now
from wrapper_relayer.app.infrastructure.db.models.event_attempts import EventAttemptDB


_MAX_ERROR_LENGTH = 2_000


def _to_attempt(row: Any) -> EventAttempt:
    return EventAttempt(
        chain=Chain(row["chain"]),
        tx_hash=row["tx_hash"],
        log_index=row["log_index"],
        event_type=EventType(row["event_type"]),
        ethscription_id=row["ethscription_id"],
        account=row["account"],
        block_number=row["block_number"],
        attempts=row["attempts"],
        status=AttemptStatus(row["status"]),
        last_error=row["last_error"],
        next_attempt_at=as_utc(row["next_attempt_at"]),
        updated_at=as_utc(row["updated_at"]),
    )


class SqlAlchemyAttemptStore:
    """
    SQLite/SQLAlchemy implementation of AttemptStore.

    One row per failing event, upserted on every failed attempt.
    """

    def __init__(self, *, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_attempt(
        self, *, chain: Chain, tx_hash: str, log_index: int
    ) -> EventAttempt | None:
        stmt = select(EventAttemptDB.__table__).where(
            EventAttemptDB.chain == chain.value,
            EventAttemptDB.tx_hash == tx_hash,
            EventAttemptDB.log_index == log_index,
        )
        try:
            async with self._engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get_attempt failed for {chain.value}:{tx_hash}:{log_index}") from exc
        return None if row is None else _to_attempt(row)

    async def record_failure(
        self,
        *,
        event: ObservedEvent,
        error: str,
        attempts: int,
        next_attempt_at: datetime | None,
        stuck: bool,
    ) -> EventAttempt:
        values = {
            "chain": event.chain.value,
            "tx_hash": event.tx_hash,
            "log_index": event.log_index,
            "event_type": event.event_type.value,
            "ethscription_id": event.ethscription_id_hex,
            "account": event.account,
            "block_number": event.block_number,
            "attempts": attempts,
            "status": (AttemptStatus.STUCK if stuck else AttemptStatus.RETRYING).value,
            "last_error": error[:_MAX_ERROR_LENGTH],
            "next_attempt_at": None if stuck else next_attempt_at,
            "updated_at": utc_now(),
        }
        stmt = insert(EventAttemptDB).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[EventAttemptDB.chain, EventAttemptDB.tx_hash, EventAttemptDB.log_index],
            set_={
                "attempts": stmt.excluded.attempts,
                "status": stmt.excluded.status,
                "last_error": stmt.excluded.last_error,
                "next_attempt_at": stmt.excluded.next_attempt_at,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"record_failure failed for {event.chain.value}:{event.tx_hash}:{event.log_index}"
            ) from exc

        return _to_attempt(values)

    async def mark_resolved(self, *, chain: Chain, tx_hash: str, log_index: int) -> None:
        stmt = (
            update(EventAttemptDB)
            .where(
                EventAttemptDB.chain == chain.value,
                EventAttemptDB.tx_hash == tx_hash,
                EventAttemptDB.log_index == log_index,
            )
            .values(
                status=AttemptStatus.RESOLVED.value,
                next_attempt_at=None,
                updated_at=utc_now(),
            )
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"mark_resolved failed for {chain.value}:{tx_hash}:{log_index}") from exc

    async def list_stuck(self, *, chain: Chain | None = None) -> list[EventAttempt]:
        stmt = select(EventAttemptDB.__table__).where(
            EventAttemptDB.status == AttemptStatus.STUCK.value
        )
        if chain is not None:
            stmt = stmt.where(EventAttemptDB.chain == chain.value)
        stmt = stmt.order_by(EventAttemptDB.chain, EventAttemptDB.block_number, EventAttemptDB.log_index)
        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(stmt)).mappings().all()
        except SQLAlchemyError as exc:
            raise PersistenceError("list_stuck failed") from exc
        return [_to_attempt(r) for r in rows]
