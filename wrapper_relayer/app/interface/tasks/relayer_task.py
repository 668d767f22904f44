from __future__ import annotations

import asyncio
import logging
import signal

from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.infrastructure.db.engine import create_app_async_engine
from wrapper_relayer.app.infrastructure.factories.relayer_factory import relayer_factory


logger = logging.getLogger(__name__)


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support add_signal_handler
            pass


async def run_relayer_task(
    *,
    config: RelayerConfig,
    max_cycles: int | None = None,
    backend: str = "web3",
) -> int:
    """
    Task: relay Deposited (appchain) -> mint (mainnet) and
    Burned (mainnet) -> withdraw (appchain) until stopped.

    SIGINT / SIGTERM stop the loop after the current cycle's in-flight event.
    """
    engine = create_app_async_engine(config)
    try:
        components = relayer_factory(backend=backend, config=config, engine=engine)

        logger.info("Wrapper relayer started")
        logger.info("Vault: %s", config.vault_address)
        logger.info("Wrapped: %s", config.wrapped_address)
        logger.info("Relayer: %s", components.relayer_address)
        logger.info(
            "Poll interval: %sms, confirmation depth: %s, max attempts: %s",
            config.poll_interval_ms,
            config.confirmation_depth,
            config.max_attempts,
        )

        stop_event = asyncio.Event()
        _install_stop_handlers(stop_event)

        return await components.loop.run(stop_event=stop_event, max_cycles=max_cycles)
    finally:
        await engine.dispose()
