from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from wrapper_relayer.app.domain.errors import CursorRegressionError, PersistenceError
from wrapper_relayer.app.domain.models import Chain
from wrapper_relayer.app.infrastructure.db.models.cursors import CursorDB


logger = logging.getLogger(__name__)


class SqlAlchemyCursorStore:
    """
    SQLite/SQLAlchemy implementation of CursorStore.

    set_cursor() reads and upserts inside one transaction and refuses to
    lower a cursor.
    """

    def __init__(self, *, engine: AsyncEngine) -> None:
        self._engine = engine

    async def get_cursor(self, *, chain: Chain) -> int:
        stmt = select(CursorDB.block_number).where(CursorDB.chain == chain.value)
        try:
            async with self._engine.connect() as conn:
                value = (await conn.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get_cursor failed for {chain.value}") from exc
        return 0 if value is None else int(value)

    async def set_cursor(self, *, chain: Chain, block_number: int) -> None:
        if block_number < 0:
            raise ValueError("Block numbers must be non-negative")

        current_stmt = select(CursorDB.block_number).where(CursorDB.chain == chain.value)
        upsert = insert(CursorDB).values(chain=chain.value, block_number=block_number)
        upsert = upsert.on_conflict_do_update(
            index_elements=[CursorDB.chain],
            set_={"block_number": upsert.excluded.block_number},
        )

        try:
            async with self._engine.begin() as conn:
                current = (await conn.execute(current_stmt)).scalar_one_or_none()
                if current is not None and block_number < current:
                    raise CursorRegressionError(
                        f"Refusing to move {chain.value} cursor back from {current} to {block_number}"
                    )
                await conn.execute(upsert)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"set_cursor failed for {chain.value}") from exc

        logger.debug("Cursor set: chain=%s, block=%s", chain.value, block_number)

    async def list_cursors(self) -> dict[Chain, int]:
        stmt = select(CursorDB.chain, CursorDB.block_number)
        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("list_cursors failed") from exc

        cursors = {chain: 0 for chain in Chain}
        for chain, block_number in rows:
            cursors[Chain(chain)] = int(block_number)
        return cursors
