from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from wrapper_relayer.app.application.services.relay_chain_events import EventOutcome
from wrapper_relayer.app.application.services.retry_stuck_events import retry_stuck_events
from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.domain.models import EventAttempt
from wrapper_relayer.app.infrastructure.db.engine import create_app_async_engine
from wrapper_relayer.app.infrastructure.factories.relayer_factory import relayer_factory


logger = logging.getLogger(__name__)


def _key(attempt: EventAttempt) -> tuple[str, str, int]:
    return attempt.chain.value, attempt.tx_hash, attempt.log_index


async def retry_stuck_task(
    *,
    config: RelayerConfig,
    attempts: Sequence[EventAttempt] | None = None,
    backend: str = "web3",
) -> Counter[EventOutcome]:
    """
    Task: give stuck events one more try.

    `attempts` is the operator's selection (the CLI picks it interactively
    before this task starts); None retries every stuck event. Selected events
    that are no longer stuck are left alone.
    """
    engine = create_app_async_engine(config)
    try:
        components = relayer_factory(backend=backend, config=config, engine=engine)
        stuck = await components.attempt_store.list_stuck()
        if attempts is not None:
            wanted = {_key(a) for a in attempts}
            chosen = [a for a in stuck if _key(a) in wanted]
            if len(chosen) < len(wanted):
                logger.info("%s selected event(s) are no longer stuck", len(wanted) - len(chosen))
        else:
            chosen = stuck
        return await retry_stuck_events(services=components.services, attempts=chosen)
    finally:
        await engine.dispose()
