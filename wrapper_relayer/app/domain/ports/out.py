from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Any, Protocol

from wrapper_relayer.app.domain.models import (
    Chain,
    EventAttempt,
    EventType,
    ObservedEvent,
    ProcessedEvent,
)


class ChainWatcher(Protocol):
    """
    Port for read-only log scanning on one chain for one event topic.

    Implementations never mutate state and never retry: RPC errors
    propagate to the caller as-is.
    """

    chain: Chain

    async def head_block(self) -> int:
        """Highest block considered safe to scan (head minus confirmation depth)."""
        ...

    async def poll_range(
        self,
        *,
        from_block: int,
        to_block: int,
    ) -> list[ObservedEvent]:
        """
        Events in [from_block, to_block], ordered by (block_number, log_index).

        Returns [] without touching the RPC when from_block > to_block.
        """
        ...


class EventStore(Protocol):
    """
    Port for the idempotency ledger.

    The (chain, tx_hash, log_index) key is unique at the storage layer;
    a second record_processed() for the same key raises DuplicateEventError.
    Rows are append-only.
    """

    async def is_processed(self, *, chain: Chain, tx_hash: str, log_index: int) -> bool: ...

    async def record_processed(
        self,
        *,
        chain: Chain,
        tx_hash: str,
        log_index: int,
        event_type: EventType,
        ethscription_id: str,
        target_tx_hash: str,
    ) -> None: ...

    async def get_processed(
        self, *, chain: Chain, tx_hash: str, log_index: int
    ) -> ProcessedEvent | None: ...

    async def linked_target_tx_hashes(self, *, event_type: EventType) -> set[str]:
        """All counterpart transaction hashes already recorded for event_type."""
        ...

    async def count_processed(self) -> dict[Chain, int]: ...


class CursorStore(Protocol):
    """
    Port for per-chain scan progress.

    set_cursor() is a durable upsert and refuses to move a cursor backwards.
    """

    async def get_cursor(self, *, chain: Chain) -> int: ...

    async def set_cursor(self, *, chain: Chain, block_number: int) -> None: ...

    async def list_cursors(self) -> dict[Chain, int]: ...


class AttemptStore(Protocol):
    """
    Port for per-event retry bookkeeping (attempt counter, backoff, stuck status).
    """

    async def get_attempt(
        self, *, chain: Chain, tx_hash: str, log_index: int
    ) -> EventAttempt | None: ...

    async def record_failure(
        self,
        *,
        event: ObservedEvent,
        error: str,
        attempts: int,
        next_attempt_at: datetime | None,
        stuck: bool,
    ) -> EventAttempt: ...

    async def mark_resolved(self, *, chain: Chain, tx_hash: str, log_index: int) -> None: ...

    async def list_stuck(self, *, chain: Chain | None = None) -> list[EventAttempt]: ...


class ActionExecutor(Protocol):
    """
    Port for the counterpart transactions.

    Each call signs, submits and waits for one confirmation, returning the
    confirmed transaction hash. Failures raise ActionError subclasses.
    """

    async def mint(self, *, ethscription_id: bytes, owner: str) -> str: ...

    async def withdraw(self, *, ethscription_id: bytes, to: str) -> str: ...


class CounterpartLocator(Protocol):
    """
    Port for finding a counterpart action that already happened on-chain.

    Used after a revert or nonce conflict to tell a lost race (or a
    submission that confirmed while the relayer was down) from a real failure.
    Hashes in `exclude` are already linked to other events and are skipped.
    """

    async def find_mint(
        self, *, ethscription_id: bytes, owner: str, exclude: Collection[str]
    ) -> str | None: ...

    async def find_withdrawal(
        self, *, ethscription_id: bytes, to: str, exclude: Collection[str]
    ) -> str | None: ...


class EvmEventDecoder(Protocol):
    def decode(
        self,
        *,
        topic0: bytes | None,
        topic1: bytes | None,
        topic2: bytes | None,
        topic3: bytes | None,
        data: bytes,
    ) -> dict[str, Any] | None:
        """
        Decode an EVM log (topics + data) into a dict of typed fields.

        Return:
          - dict[str, Any] for decoded event fields
          - None if the log is not decodable / not the expected event
        """
        ...
