from __future__ import annotations

import logging
from typing import Any, Final, Mapping

from eth_utils import to_checksum_address
from web3 import AsyncWeb3, Web3

from wrapper_relayer.app.domain.models import Chain, EventType, ObservedEvent
from wrapper_relayer.app.infrastructure.decoders.ethscription_event_decoder import (
    EthscriptionEventDecoder,
)


logger = logging.getLogger(__name__)

_DEFAULT_BLOCK_BATCH_SIZE: Final[int] = 10_000


class Web3ChainWatcher:
    """
    AsyncWeb3 implementation of ChainWatcher.

    Queries eth_getLogs for one (contract, topic0) pair in consecutive
    block batches and turns each log into an ObservedEvent. The scanned head
    is the chain head minus `confirmation_depth`; this is a plain offset,
    not a reorg-aware finality check.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        chain: Chain,
        event_type: EventType,
        contract_address: str,
        decoder: EthscriptionEventDecoder,
        account_field: str = "owner",
        confirmation_depth: int = 0,
        block_batch_size: int = _DEFAULT_BLOCK_BATCH_SIZE,
    ) -> None:
        if block_batch_size <= 0:
            raise ValueError("block_batch_size must be positive")
        if confirmation_depth < 0:
            raise ValueError("confirmation_depth must be non-negative")
        self._w3 = w3
        self.chain = chain
        self._event_type = event_type
        self._address = to_checksum_address(contract_address)
        self._decoder = decoder
        self._account_field = account_field
        self._confirmation_depth = confirmation_depth
        self._block_batch_size = block_batch_size
        self._topic0_hex = "0x" + decoder.topic0.hex()

    async def head_block(self) -> int:
        head = await self._w3.eth.block_number
        return max(int(head) - self._confirmation_depth, 0)

    async def poll_range(
        self,
        *,
        from_block: int,
        to_block: int,
    ) -> list[ObservedEvent]:
        if from_block > to_block:
            return []
        if from_block < 0:
            raise ValueError("Block numbers must be non-negative")

        logger.debug(
            "Scanning %s logs: chain=%s, blocks=[%s, %s]",
            self._decoder.event_signature,
            self.chain.value,
            from_block,
            to_block,
        )

        events: list[ObservedEvent] = []
        current = from_block
        while current <= to_block:
            batch_from = current
            batch_to = min(current + self._block_batch_size - 1, to_block)

            logs = await self._w3.eth.get_logs(
                {
                    "address": self._address,
                    "topics": [self._topic0_hex],
                    "fromBlock": batch_from,
                    "toBlock": batch_to,
                }
            )
            for log in logs:
                event = self._to_event(log)
                if event is not None:
                    events.append(event)

            current = batch_to + 1

        events.sort(key=lambda e: e.sort_key)

        logger.debug(
            "Scanned chain=%s, blocks=[%s, %s], events=%s",
            self.chain.value,
            from_block,
            to_block,
            len(events),
        )
        return events

    def _to_event(self, log: Mapping[str, Any]) -> ObservedEvent | None:
        if log.get("removed"):
            return None

        topics = [bytes(t) for t in log.get("topics", [])]
        padded = topics + [None] * (4 - len(topics))
        decoded = self._decoder.decode(
            topic0=padded[0],
            topic1=padded[1],
            topic2=padded[2],
            topic3=padded[3],
            data=bytes(log.get("data", b"")),
        )
        if decoded is None:
            logger.warning(
                "Skipping undecodable log: chain=%s, tx=%s, log_index=%s",
                self.chain.value,
                Web3.to_hex(log["transactionHash"]),
                log.get("logIndex"),
            )
            return None

        return ObservedEvent(
            chain=self.chain,
            tx_hash=Web3.to_hex(log["transactionHash"]).lower(),
            log_index=int(log["logIndex"]),
            block_number=int(log["blockNumber"]),
            event_type=self._event_type,
            ethscription_id=decoded["ethscriptionId"],
            account=to_checksum_address(decoded[self._account_field]),
        )
