from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timedelta, timezone

from wrapper_relayer.app.domain.errors import PersistenceError
from wrapper_relayer.app.domain.models import Chain, EventType, ObservedEvent


def ethscription_id(fill: int) -> bytes:
    """0xAA..AA style 32-byte id."""
    return bytes([fill]) * 32


def address(fill: int) -> str:
    """0xBB..BB style address (checksummed form is irrelevant for fakes)."""
    return "0x" + f"{fill:02X}" * 20


def make_event(
    *,
    chain: Chain = Chain.APPCHAIN,
    block: int,
    log_index: int = 0,
    id_fill: int = 0xAA,
    account_fill: int = 0xBB,
    event_type: EventType | None = None,
) -> ObservedEvent:
    if event_type is None:
        event_type = EventType.DEPOSIT if chain == Chain.APPCHAIN else EventType.BURN
    return ObservedEvent(
        chain=chain,
        tx_hash="0x" + f"{block:032x}{log_index:032x}",
        log_index=log_index,
        block_number=block,
        event_type=event_type,
        ethscription_id=ethscription_id(id_fill),
        account=address(account_fill),
    )


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeChainWatcher:
    """In-memory ChainWatcher; poll_range returns events in insertion order."""

    def __init__(self, chain: Chain, *, head: int = 0) -> None:
        self.chain = chain
        self.head = head
        self.events: list[ObservedEvent] = []
        self.poll_calls: list[tuple[int, int]] = []
        self.fail_with: Exception | None = None

    def add(self, *events: ObservedEvent) -> None:
        for event in events:
            self.events.append(event)
            self.head = max(self.head, event.block_number)

    async def head_block(self) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        return self.head

    async def poll_range(self, *, from_block: int, to_block: int) -> list[ObservedEvent]:
        if from_block > to_block:
            return []
        self.poll_calls.append((from_block, to_block))
        return [e for e in self.events if from_block <= e.block_number <= to_block]


class FakeActionExecutor:
    """
    Records mint/withdraw calls and returns deterministic tx hashes.

    - fail(id, exc, times) makes the next `times` calls for that id raise.
    - land(kind, id, tx) puts a counterpart tx "on-chain" for find_mint /
      find_withdrawal.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, bytes, str]] = []
        self._failures: dict[bytes, list[Exception]] = {}
        self._landed: dict[tuple[str, bytes], list[str]] = {}
        self._next_tx = 0

    def fail(self, ethscription_id: bytes, exc: Exception, *, times: int = 1) -> None:
        self._failures.setdefault(ethscription_id, []).extend([exc] * times)

    def land(self, kind: str, ethscription_id: bytes, tx_hash: str) -> None:
        self._landed.setdefault((kind, ethscription_id), []).append(tx_hash)

    def calls_for(self, kind: str) -> list[tuple[bytes, str]]:
        return [(i, a) for k, i, a in self.calls if k == kind]

    async def mint(self, *, ethscription_id: bytes, owner: str) -> str:
        return self._act("mint", ethscription_id, owner)

    async def withdraw(self, *, ethscription_id: bytes, to: str) -> str:
        return self._act("withdraw", ethscription_id, to)

    async def find_mint(
        self, *, ethscription_id: bytes, owner: str, exclude: Collection[str]
    ) -> str | None:
        return self._find("mint", ethscription_id, exclude)

    async def find_withdrawal(
        self, *, ethscription_id: bytes, to: str, exclude: Collection[str]
    ) -> str | None:
        return self._find("withdraw", ethscription_id, exclude)

    def _act(self, kind: str, ethscription_id: bytes, account: str) -> str:
        self.calls.append((kind, ethscription_id, account))
        pending = self._failures.get(ethscription_id)
        if pending:
            raise pending.pop(0)
        self._next_tx += 1
        tx_hash = "0x" + f"{self._next_tx:064x}"
        self.land(kind, ethscription_id, tx_hash)
        return tx_hash

    def _find(self, kind: str, ethscription_id: bytes, exclude: Collection[str]) -> str | None:
        for tx_hash in self._landed.get((kind, ethscription_id), []):
            if tx_hash not in exclude:
                return tx_hash
        return None


class FlakyEventStore:
    """Wraps a real EventStore; record_processed fails while `broken` is set."""

    def __init__(self, inner) -> None:  # type: ignore[no-untyped-def]
        self._inner = inner
        self.broken = False

    async def record_processed(self, **kwargs) -> None:  # type: ignore[no-untyped-def]
        if self.broken:
            raise PersistenceError("disk I/O error (simulated)")
        await self._inner.record_processed(**kwargs)

    def __getattr__(self, name: str):  # type: ignore[no-untyped-def]
        return getattr(self._inner, name)


def fake_relayer_factory(executor: FakeActionExecutor, *, backoff=None):  # type: ignore[no-untyped-def]
    """Registry entry wiring real SQLite stores to fake watchers and executor."""
    from wrapper_relayer.app.application.services.relay_chain_events import ChainRelayService
    from wrapper_relayer.app.application.services.relayer_loop import RelayerLoop
    from wrapper_relayer.app.application.services.retry_policy import BackoffPolicy
    from wrapper_relayer.app.infrastructure.adapters.attempt_store import SqlAlchemyAttemptStore
    from wrapper_relayer.app.infrastructure.adapters.cursor_store import SqlAlchemyCursorStore
    from wrapper_relayer.app.infrastructure.adapters.event_store import SqlAlchemyEventStore
    from wrapper_relayer.app.infrastructure.factories.relayer_factory import RelayerComponents

    policy = backoff or BackoffPolicy.from_millis(base_delay_ms=10_000, max_delay_ms=3_600_000, max_attempts=3)

    def _factory(config, engine) -> RelayerComponents:  # type: ignore[no-untyped-def]
        event_store = SqlAlchemyEventStore(engine=engine)
        cursor_store = SqlAlchemyCursorStore(engine=engine)
        attempt_store = SqlAlchemyAttemptStore(engine=engine)

        def _service(chain: Chain) -> ChainRelayService:
            return ChainRelayService(
                watcher=FakeChainWatcher(chain),
                event_store=event_store,
                cursor_store=cursor_store,
                attempt_store=attempt_store,
                executor=executor,
                locator=executor,
                backoff=policy,
            )

        deposits = _service(Chain.APPCHAIN)
        burns = _service(Chain.MAINNET)
        return RelayerComponents(
            relayer_address=address(0xEE),
            event_store=event_store,
            cursor_store=cursor_store,
            attempt_store=attempt_store,
            deposits=deposits,
            burns=burns,
            loop=RelayerLoop(services=[deposits, burns], poll_interval_s=0),
        )

    return _factory
