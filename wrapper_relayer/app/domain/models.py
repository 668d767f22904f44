from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Chain(str, Enum):
    APPCHAIN = "appchain"
    MAINNET = "mainnet"


class EventType(str, Enum):
    DEPOSIT = "deposit"
    BURN = "burn"


class AttemptStatus(str, Enum):
    RETRYING = "retrying"
    STUCK = "stuck"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    @property
    def is_empty(self) -> bool:
        return self.from_block > self.to_block


@dataclass(frozen=True)
class ObservedEvent:
    """
    A Deposited or Burned log seen on a source chain.

    ethscription_id is the raw 32-byte identifier; account is the
    checksummed owner address that receives the counterpart asset.
    """

    chain: Chain
    tx_hash: str
    log_index: int
    block_number: int
    event_type: EventType
    ethscription_id: bytes
    account: str

    @property
    def ethscription_id_hex(self) -> str:
        return "0x" + self.ethscription_id.hex()

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class ProcessedEvent:
    chain: Chain
    tx_hash: str
    log_index: int
    event_type: EventType
    ethscription_id: str
    target_tx_hash: str | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class EventAttempt:
    """Retry bookkeeping for an event whose counterpart action failed."""

    chain: Chain
    tx_hash: str
    log_index: int
    event_type: EventType
    ethscription_id: str
    account: str
    block_number: int
    attempts: int
    status: AttemptStatus
    last_error: str | None
    next_attempt_at: datetime | None
    updated_at: datetime | None = None

    def to_observed_event(self) -> ObservedEvent:
        return ObservedEvent(
            chain=self.chain,
            tx_hash=self.tx_hash,
            log_index=self.log_index,
            block_number=self.block_number,
            event_type=self.event_type,
            ethscription_id=bytes.fromhex(self.ethscription_id.removeprefix("0x")),
            account=self.account,
        )


@dataclass(frozen=True)
class PollResult:
    """Summary of one ChainRelayService.poll_once() call."""

    chain: Chain
    from_block: int
    to_block: int
    discovered: int = 0
    relayed: int = 0
    reconciled: int = 0
    skipped: int = 0
    deferred: int = 0
    failed: int = 0
    stuck: int = 0
    cursor: int = 0
