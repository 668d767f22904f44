from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

from wrapper_relayer.app.application.services.retry_policy import BackoffPolicy
from wrapper_relayer.app.domain.errors import (
    ActionError,
    DuplicateEventError,
    InsufficientBalanceError,
    NonceConflictError,
    PersistenceError,
    TransactionRevertedError,
)
from wrapper_relayer.app.domain.models import (
    AttemptStatus,
    BlockRange,
    EventAttempt,
    EventType,
    ObservedEvent,
    PollResult,
)
from wrapper_relayer.app.domain.ports.out import (
    ActionExecutor,
    AttemptStore,
    ChainWatcher,
    CounterpartLocator,
    CursorStore,
    EventStore,
)


logger = logging.getLogger(__name__)


class EventOutcome(str, Enum):
    RELAYED = "relayed"
    RECONCILED = "reconciled"
    SKIPPED = "skipped"
    STUCK = "stuck"
    DEFERRED = "deferred"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_OUTCOMES


_TERMINAL_OUTCOMES = frozenset(
    {EventOutcome.RELAYED, EventOutcome.RECONCILED, EventOutcome.SKIPPED, EventOutcome.STUCK}
)

# Errors after which the counterpart may already exist on-chain
_RECONCILABLE_ERRORS = (TransactionRevertedError, NonceConflictError)

# Only these spend the attempt budget. Transient submission errors keep backing
# off until the target chain recovers.
_BUDGETED_ERRORS = (TransactionRevertedError, InsufficientBalanceError)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ChainRelayService:
    """
    Relays one source chain's events to the counterpart chain.

    One poll_once() call:
      1. scans (cursor, safe head] with the watcher,
      2. handles every event in (block_number, log_index) order,
      3. moves the cursor to the highest block below the first event that
         did not reach a terminal outcome.

    Terminal outcomes: relayed, reconciled (counterpart found on-chain),
    skipped (already recorded or previously stuck) and stuck (attempt budget
    spent). Failed and deferred events hold the cursor so they are scanned
    again on the next cycle.
    """

    def __init__(
        self,
        *,
        watcher: ChainWatcher,
        event_store: EventStore,
        cursor_store: CursorStore,
        attempt_store: AttemptStore,
        executor: ActionExecutor,
        backoff: BackoffPolicy,
        locator: CounterpartLocator | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._watcher = watcher
        self._event_store = event_store
        self._cursor_store = cursor_store
        self._attempt_store = attempt_store
        self._executor = executor
        self._backoff = backoff
        self._locator = locator
        self._clock = clock
        self.chain = watcher.chain

    async def poll_once(self) -> PollResult:
        cursor = await self._cursor_store.get_cursor(chain=self.chain)
        block_range = BlockRange(
            from_block=cursor + 1,
            to_block=await self._watcher.head_block(),
        )
        if block_range.is_empty:
            return PollResult(
                chain=self.chain,
                from_block=block_range.from_block,
                to_block=block_range.to_block,
                cursor=cursor,
            )

        events = await self._watcher.poll_range(
            from_block=block_range.from_block,
            to_block=block_range.to_block,
        )

        outcomes: Counter[EventOutcome] = Counter()
        first_unsettled_block: int | None = None
        # ids with an unsettled earlier event: later events for them must wait
        blocked_ids: set[bytes] = set()

        for event in sorted(events, key=lambda e: e.sort_key):
            if event.ethscription_id in blocked_ids:
                logger.info(
                    "Deferring %s: chain=%s, ethscription_id=%s waits for an earlier event",
                    event.event_type.value,
                    self.chain.value,
                    event.ethscription_id_hex,
                )
                outcome = EventOutcome.DEFERRED
            else:
                try:
                    outcome = await self.process_event(event)
                except Exception:
                    logger.exception(
                        "Unexpected error relaying %s: chain=%s, tx=%s, log_index=%s, ethscription_id=%s",
                        event.event_type.value,
                        self.chain.value,
                        event.tx_hash,
                        event.log_index,
                        event.ethscription_id_hex,
                    )
                    outcome = EventOutcome.FAILED

            outcomes[outcome] += 1
            if not outcome.is_terminal:
                blocked_ids.add(event.ethscription_id)
                if first_unsettled_block is None:
                    first_unsettled_block = event.block_number

        if first_unsettled_block is None:
            target_cursor = block_range.to_block
        else:
            target_cursor = first_unsettled_block - 1

        new_cursor = cursor
        if target_cursor > cursor:
            await self._cursor_store.set_cursor(chain=self.chain, block_number=target_cursor)
            new_cursor = target_cursor

        result = PollResult(
            chain=self.chain,
            from_block=block_range.from_block,
            to_block=block_range.to_block,
            discovered=len(events),
            relayed=outcomes[EventOutcome.RELAYED],
            reconciled=outcomes[EventOutcome.RECONCILED],
            skipped=outcomes[EventOutcome.SKIPPED],
            deferred=outcomes[EventOutcome.DEFERRED],
            failed=outcomes[EventOutcome.FAILED],
            stuck=outcomes[EventOutcome.STUCK],
            cursor=new_cursor,
        )
        log = logger.info if events else logger.debug
        log(
            "Poll finished: chain=%s, blocks=[%s, %s], discovered=%s, relayed=%s, reconciled=%s, "
            "skipped=%s, deferred=%s, failed=%s, stuck=%s, cursor=%s",
            self.chain.value,
            result.from_block,
            result.to_block,
            result.discovered,
            result.relayed,
            result.reconciled,
            result.skipped,
            result.deferred,
            result.failed,
            result.stuck,
            result.cursor,
        )
        return result

    async def process_event(self, event: ObservedEvent) -> EventOutcome:
        """Drive one event from Observed towards a terminal outcome."""
        if await self._event_store.is_processed(
            chain=event.chain, tx_hash=event.tx_hash, log_index=event.log_index
        ):
            return EventOutcome.SKIPPED

        attempt = await self._attempt_store.get_attempt(
            chain=event.chain, tx_hash=event.tx_hash, log_index=event.log_index
        )
        if attempt is not None and attempt.status == AttemptStatus.STUCK:
            logger.debug(
                "Skipping stuck event: chain=%s, tx=%s, log_index=%s, ethscription_id=%s",
                event.chain.value,
                event.tx_hash,
                event.log_index,
                event.ethscription_id_hex,
            )
            return EventOutcome.SKIPPED

        if (
            attempt is not None
            and attempt.status == AttemptStatus.RETRYING
            and attempt.next_attempt_at is not None
            and attempt.next_attempt_at > self._clock()
        ):
            return EventOutcome.DEFERRED

        return await self._attempt(event, attempt)

    async def retry_stuck(self, attempt: EventAttempt) -> EventOutcome:
        """
        Run a stuck event's action once more, outside the poll loop.

        The cursor is not touched. On failure the event stays stuck with its
        attempt counter bumped.
        """
        if attempt.chain != self.chain:
            raise ValueError(f"attempt belongs to {attempt.chain.value}, service relays {self.chain.value}")

        event = attempt.to_observed_event()
        if await self._event_store.is_processed(
            chain=event.chain, tx_hash=event.tx_hash, log_index=event.log_index
        ):
            await self._attempt_store.mark_resolved(
                chain=event.chain, tx_hash=event.tx_hash, log_index=event.log_index
            )
            return EventOutcome.SKIPPED

        return await self._attempt(event, attempt, force_stuck_on_failure=True)

    # ---------------------------------------------------------------------
    # internals
    # ---------------------------------------------------------------------

    async def _attempt(
        self,
        event: ObservedEvent,
        attempt: EventAttempt | None,
        *,
        force_stuck_on_failure: bool = False,
    ) -> EventOutcome:
        logger.info(
            "Relaying %s: chain=%s, block=%s, tx=%s, log_index=%s, ethscription_id=%s, account=%s",
            event.event_type.value,
            event.chain.value,
            event.block_number,
            event.tx_hash,
            event.log_index,
            event.ethscription_id_hex,
            event.account,
        )

        try:
            target_tx_hash = await self._relay(event)
        except ActionError as exc:
            return await self._handle_action_failure(
                event, attempt, exc, force_stuck=force_stuck_on_failure
            )

        return await self._record(event, target_tx_hash, attempt, EventOutcome.RELAYED)

    async def _relay(self, event: ObservedEvent) -> str:
        if event.event_type == EventType.DEPOSIT:
            return await self._executor.mint(ethscription_id=event.ethscription_id, owner=event.account)
        if event.event_type == EventType.BURN:
            return await self._executor.withdraw(ethscription_id=event.ethscription_id, to=event.account)
        raise ValueError(f"Unsupported event type: {event.event_type!r}")

    async def _find_counterpart(self, event: ObservedEvent) -> str | None:
        if self._locator is None:
            return None
        exclude = await self._event_store.linked_target_tx_hashes(event_type=event.event_type)
        if event.event_type == EventType.DEPOSIT:
            return await self._locator.find_mint(
                ethscription_id=event.ethscription_id, owner=event.account, exclude=exclude
            )
        return await self._locator.find_withdrawal(
            ethscription_id=event.ethscription_id, to=event.account, exclude=exclude
        )

    async def _handle_action_failure(
        self,
        event: ObservedEvent,
        attempt: EventAttempt | None,
        exc: ActionError,
        *,
        force_stuck: bool,
    ) -> EventOutcome:
        if isinstance(exc, _RECONCILABLE_ERRORS):
            try:
                counterpart = await self._find_counterpart(event)
            except Exception:
                logger.warning(
                    "Counterpart lookup failed: chain=%s, ethscription_id=%s",
                    event.chain.value,
                    event.ethscription_id_hex,
                    exc_info=True,
                )
                counterpart = None
            if counterpart is not None:
                # lost race, or a submission that confirmed while we were down
                logger.info(
                    "Counterpart already on-chain, not an error: chain=%s, ethscription_id=%s, "
                    "target_tx=%s, reason=%s",
                    event.chain.value,
                    event.ethscription_id_hex,
                    counterpart,
                    exc,
                )
                return await self._record(event, counterpart, attempt, EventOutcome.RECONCILED)

        prior = attempt.attempts if attempt is not None and attempt.status != AttemptStatus.RESOLVED else 0
        attempts = prior + 1
        stuck = force_stuck or (
            isinstance(exc, _BUDGETED_ERRORS) and self._backoff.is_exhausted(attempts)
        )
        now = self._clock()
        next_attempt_at = self._backoff.next_attempt_at(attempts, now)

        await self._attempt_store.record_failure(
            event=event,
            error=f"{type(exc).__name__}: {exc}",
            attempts=attempts,
            next_attempt_at=next_attempt_at,
            stuck=stuck,
        )

        if stuck:
            logger.error(
                "Event STUCK after %s attempts, operator action required: chain=%s, tx=%s, "
                "log_index=%s, ethscription_id=%s, error=%s: %s",
                attempts,
                event.chain.value,
                event.tx_hash,
                event.log_index,
                event.ethscription_id_hex,
                type(exc).__name__,
                exc,
            )
            return EventOutcome.STUCK

        logger.warning(
            "Relay failed (attempt %s/%s, next at %s): chain=%s, ethscription_id=%s, error=%s: %s",
            attempts,
            self._backoff.max_attempts,
            next_attempt_at.isoformat(),
            event.chain.value,
            event.ethscription_id_hex,
            type(exc).__name__,
            exc,
        )
        return EventOutcome.FAILED

    async def _record(
        self,
        event: ObservedEvent,
        target_tx_hash: str,
        attempt: EventAttempt | None,
        outcome: EventOutcome,
    ) -> EventOutcome:
        try:
            await self._event_store.record_processed(
                chain=event.chain,
                tx_hash=event.tx_hash,
                log_index=event.log_index,
                event_type=event.event_type,
                ethscription_id=event.ethscription_id_hex,
                target_tx_hash=target_tx_hash,
            )
        except DuplicateEventError:
            logger.warning(
                "Event recorded by another writer: chain=%s, tx=%s, log_index=%s, ethscription_id=%s",
                event.chain.value,
                event.tx_hash,
                event.log_index,
                event.ethscription_id_hex,
            )
            return EventOutcome.SKIPPED
        except PersistenceError:
            logger.exception(
                "Counterpart confirmed but NOT recorded, cursor held: chain=%s, tx=%s, log_index=%s, "
                "ethscription_id=%s, target_tx=%s",
                event.chain.value,
                event.tx_hash,
                event.log_index,
                event.ethscription_id_hex,
                target_tx_hash,
            )
            return EventOutcome.FAILED

        logger.info(
            "Relayed %s: chain=%s, ethscription_id=%s, target_tx=%s",
            event.event_type.value,
            event.chain.value,
            event.ethscription_id_hex,
            target_tx_hash,
        )

        if attempt is not None and attempt.status != AttemptStatus.RESOLVED:
            try:
                await self._attempt_store.mark_resolved(
                    chain=event.chain, tx_hash=event.tx_hash, log_index=event.log_index
                )
            except PersistenceError:
                logger.warning(
                    "Could not mark attempt resolved: chain=%s, tx=%s, log_index=%s",
                    event.chain.value,
                    event.tx_hash,
                    event.log_index,
                    exc_info=True,
                )

        return outcome
