from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence

from wrapper_relayer.app.application.services.relay_chain_events import (
    ChainRelayService,
    EventOutcome,
)
from wrapper_relayer.app.domain.models import Chain, EventAttempt


logger = logging.getLogger(__name__)


async def retry_stuck_events(
    *,
    services: Mapping[Chain, ChainRelayService],
    attempts: Sequence[EventAttempt],
) -> Counter[EventOutcome]:
    """
    Application-level use case for operator-driven retries of stuck events.

    Each selected event gets exactly one more try through the service of its
    source chain. A failure on one event does not stop the others.
    """
    outcomes: Counter[EventOutcome] = Counter()

    for attempt in attempts:
        service = services.get(attempt.chain)
        if service is None:
            raise ValueError(f"No relay service configured for chain {attempt.chain.value!r}")

        try:
            outcome = await service.retry_stuck(attempt)
        except Exception:
            logger.exception(
                "Retry of stuck event failed: chain=%s, tx=%s, log_index=%s, ethscription_id=%s",
                attempt.chain.value,
                attempt.tx_hash,
                attempt.log_index,
                attempt.ethscription_id,
            )
            outcome = EventOutcome.FAILED

        outcomes[outcome] += 1

    logger.info(
        "Stuck event retry finished: %s",
        ", ".join(f"{o.value}={n}" for o, n in sorted(outcomes.items())) or "nothing to do",
    )
    return outcomes
