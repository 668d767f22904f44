from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from wrapper_relayer.app.application.services.relay_chain_events import ChainRelayService
from wrapper_relayer.app.domain.models import PollResult


logger = logging.getLogger(__name__)


class RelayerLoop:
    """
    Sequential scheduler over the per-chain relay services.

    Each cycle polls every service in order (appchain deposits, then
    mainnet burns), each behind its own catch so one chain's outage does not
    starve the other, then waits poll_interval_s or until stop_event is set.
    """

    def __init__(
        self,
        *,
        services: Sequence[ChainRelayService],
        poll_interval_s: float,
    ) -> None:
        if poll_interval_s < 0:
            raise ValueError("poll_interval_s must be non-negative")
        self._services = list(services)
        self._poll_interval_s = poll_interval_s

    async def run_cycle(self) -> list[PollResult]:
        results: list[PollResult] = []
        for service in self._services:
            try:
                results.append(await service.poll_once())
            except Exception:
                logger.exception("Poll failed: chain=%s", service.chain.value)
        return results

    async def run(
        self,
        *,
        stop_event: asyncio.Event | None = None,
        max_cycles: int | None = None,
    ) -> int:
        """
        Run cycles until stop_event is set or max_cycles have completed.

        Returns the number of completed cycles. A stop request is honoured
        between cycles; the event being relayed when it arrives finishes first.
        """
        stop = stop_event or asyncio.Event()
        cycles = 0

        while not stop.is_set():
            await self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval_s)
            except asyncio.TimeoutError:
                pass

        logger.info("Relayer loop stopped after %s cycles", cycles)
        return cycles
