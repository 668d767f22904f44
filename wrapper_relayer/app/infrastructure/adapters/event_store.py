from __future__ import annotations

import logging

from sqlalchemy import func, insert, literal, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from wrapper_relayer.app.domain.errors import DuplicateEventError, PersistenceError
from wrapper_relayer.app.domain.models import Chain, EventType, ProcessedEvent
from wrapper_relayer.app.infrastructure.adapters._sqlite import as_utc, utc_now
from wrapper_relayer.app.infrastructure.db.models.processed_events import ProcessedEventDB


logger = logging.getLogger(__name__)


class SqlAlchemyEventStore:
    """
    SQLite/SQLAlchemy implementation of EventStore.

    record_processed() is a plain INSERT (no ON CONFLICT): the primary key
    on (chain, tx_hash, log_index) is what rejects a second record of the
    same event, even when the caller's is_processed() pre-check raced.
    """

    def __init__(self, *, engine: AsyncEngine) -> None:
        self._engine = engine

    async def is_processed(self, *, chain: Chain, tx_hash: str, log_index: int) -> bool:
        stmt = (
            select(literal(1))
            .select_from(ProcessedEventDB)
            .where(
                ProcessedEventDB.chain == chain.value,
                ProcessedEventDB.tx_hash == tx_hash,
                ProcessedEventDB.log_index == log_index,
            )
        )
        try:
            async with self._engine.connect() as conn:
                row = (await conn.execute(stmt)).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"is_processed failed for {chain.value}:{tx_hash}:{log_index}") from exc
        return row is not None

    async def record_processed(
        self,
        *,
        chain: Chain,
        tx_hash: str,
        log_index: int,
        event_type: EventType,
        ethscription_id: str,
        target_tx_hash: str,
    ) -> None:
        stmt = insert(ProcessedEventDB).values(
            chain=chain.value,
            tx_hash=tx_hash,
            log_index=log_index,
            event_type=event_type.value,
            ethscription_id=ethscription_id,
            target_tx_hash=target_tx_hash,
            created_at=utc_now(),
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except IntegrityError as exc:
            raise DuplicateEventError(
                f"Event already recorded: {chain.value}:{tx_hash}:{log_index}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"record_processed failed for {chain.value}:{tx_hash}:{log_index}"
            ) from exc

        logger.debug(
            "Recorded processed event: chain=%s, tx=%s, log_index=%s, ethscription_id=%s, target_tx=%s",
            chain.value,
            tx_hash,
            log_index,
            ethscription_id,
            target_tx_hash,
        )

    async def get_processed(
        self, *, chain: Chain, tx_hash: str, log_index: int
    ) -> ProcessedEvent | None:
        stmt = select(ProcessedEventDB.__table__).where(
            ProcessedEventDB.chain == chain.value,
            ProcessedEventDB.tx_hash == tx_hash,
            ProcessedEventDB.log_index == log_index,
        )
        try:
            async with self._engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get_processed failed for {chain.value}:{tx_hash}:{log_index}") from exc

        if row is None:
            return None
        return ProcessedEvent(
            chain=Chain(row["chain"]),
            tx_hash=row["tx_hash"],
            log_index=row["log_index"],
            event_type=EventType(row["event_type"]),
            ethscription_id=row["ethscription_id"],
            target_tx_hash=row["target_tx_hash"],
            created_at=as_utc(row["created_at"]),
        )

    async def linked_target_tx_hashes(self, *, event_type: EventType) -> set[str]:
        stmt = select(ProcessedEventDB.target_tx_hash).where(
            ProcessedEventDB.event_type == event_type.value,
            ProcessedEventDB.target_tx_hash.is_not(None),
        )
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return {h.lower() for h in result.scalars().all()}
        except SQLAlchemyError as exc:
            raise PersistenceError("linked_target_tx_hashes failed") from exc

    async def count_processed(self) -> dict[Chain, int]:
        stmt = select(ProcessedEventDB.chain, func.count()).group_by(ProcessedEventDB.chain)
        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("count_processed failed") from exc

        counts = {chain: 0 for chain in Chain}
        for chain, count in rows:
            counts[Chain(chain)] = count
        return counts
