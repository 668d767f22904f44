from __future__ import annotations

from sqlalchemy import BigInteger, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from wrapper_relayer.app.infrastructure.db.db_base import BaseDB


class CursorDB(BaseDB):
    """
    Last fully processed block per source chain.

    Scanning resumes at block_number + 1 after a restart. The value only
    ever grows.
    """

    __tablename__ = "cursors"
    __table_args__ = (PrimaryKeyConstraint("chain"),)

    chain: Mapped[str] = mapped_column(Text, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
