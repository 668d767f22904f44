import asyncio

import pytest

from wrapper_relayer.app.application.services.relayer_loop import RelayerLoop
from wrapper_relayer.app.domain.models import Chain, EventType

from tests.fakes import address, ethscription_id, make_event


class _StopAfterPoll:
    """Poll stub that requests shutdown from inside its first cycle."""

    chain = Chain.APPCHAIN

    def __init__(self, stop: asyncio.Event) -> None:
        self._stop = stop
        self.polls = 0

    async def poll_once(self) -> None:
        self.polls += 1
        self._stop.set()


@pytest.mark.asyncio
async def test_max_cycles_polls_both_chains(
    deposit_service, burn_service, appchain_watcher, mainnet_watcher, executor
):
    appchain_watcher.add(make_event(block=10, id_fill=0x01))
    mainnet_watcher.add(make_event(chain=Chain.MAINNET, block=20, id_fill=0x02))

    loop = RelayerLoop(services=[deposit_service, burn_service], poll_interval_s=0)
    cycles = await loop.run(max_cycles=2)

    assert cycles == 2
    assert executor.calls_for("mint") == [(ethscription_id(0x01), address(0xBB))]
    assert executor.calls_for("withdraw") == [(ethscription_id(0x02), address(0xBB))]
    # second cycle starts past the first one's head
    assert appchain_watcher.poll_calls == [(1, 10)]
    assert mainnet_watcher.poll_calls == [(1, 20)]


@pytest.mark.asyncio
async def test_one_chain_outage_does_not_block_the_other(
    deposit_service, burn_service, appchain_watcher, mainnet_watcher, executor, cursor_store
):
    appchain_watcher.add(make_event(block=5))
    mainnet_watcher.fail_with = ConnectionError("mainnet rpc down")

    loop = RelayerLoop(services=[burn_service, deposit_service], poll_interval_s=0)
    results = await loop.run_cycle()

    assert [r.chain for r in results] == [Chain.APPCHAIN]
    assert len(executor.calls_for("mint")) == 1
    assert await cursor_store.get_cursor(chain=Chain.APPCHAIN) == 5
    assert await cursor_store.get_cursor(chain=Chain.MAINNET) == 0

    mainnet_watcher.fail_with = None
    mainnet_watcher.add(make_event(chain=Chain.MAINNET, block=7, event_type=EventType.BURN))
    results = await loop.run_cycle()

    assert {r.chain for r in results} == {Chain.APPCHAIN, Chain.MAINNET}
    assert len(executor.calls_for("withdraw")) == 1


@pytest.mark.asyncio
async def test_preset_stop_runs_no_cycles(deposit_service, appchain_watcher):
    stop = asyncio.Event()
    stop.set()

    cycles = await RelayerLoop(services=[deposit_service], poll_interval_s=0).run(stop_event=stop)

    assert cycles == 0
    assert appchain_watcher.poll_calls == []


@pytest.mark.asyncio
async def test_stop_interrupts_the_wait():
    stop = asyncio.Event()
    service = _StopAfterPoll(stop)

    # a long interval would hang the test if the wait ignored the stop event
    loop = RelayerLoop(services=[service], poll_interval_s=3600)
    cycles = await asyncio.wait_for(loop.run(stop_event=stop), timeout=5)

    assert cycles == 1
    assert service.polls == 1


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        RelayerLoop(services=[], poll_interval_s=-1)
