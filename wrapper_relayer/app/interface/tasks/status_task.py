from __future__ import annotations

from dataclasses import dataclass

from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.domain.models import Chain, EventAttempt
from wrapper_relayer.app.infrastructure.adapters.attempt_store import SqlAlchemyAttemptStore
from wrapper_relayer.app.infrastructure.adapters.cursor_store import SqlAlchemyCursorStore
from wrapper_relayer.app.infrastructure.adapters.event_store import SqlAlchemyEventStore
from wrapper_relayer.app.infrastructure.db.engine import create_app_async_engine


@dataclass(frozen=True)
class RelayerStatus:
    cursors: dict[Chain, int]
    processed: dict[Chain, int]
    stuck: list[EventAttempt]


async def relayer_status_task(*, config: RelayerConfig) -> RelayerStatus:
    """Task: read cursors, processed counts and stuck events. No RPC access."""
    engine = create_app_async_engine(config)
    try:
        return RelayerStatus(
            cursors=await SqlAlchemyCursorStore(engine=engine).list_cursors(),
            processed=await SqlAlchemyEventStore(engine=engine).count_processed(),
            stuck=await SqlAlchemyAttemptStore(engine=engine).list_stuck(),
        )
    finally:
        await engine.dispose()
