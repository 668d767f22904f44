from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any, Final

from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from wrapper_relayer.app.domain.errors import (
    ActionError,
    ConfirmationTimeoutError,
    InsufficientBalanceError,
    NonceConflictError,
    RpcSubmissionError,
    TransactionRevertedError,
)
from wrapper_relayer.app.domain.models import Chain


logger = logging.getLogger(__name__)

_DEFAULT_BLOCK_BATCH_SIZE: Final[int] = 10_000

_NONCE_CONFLICT_MARKERS: Final[tuple[str, ...]] = (
    "already known",
    "known transaction",
    "nonce too low",
    "replacement transaction underpriced",
)
_INSUFFICIENT_FUNDS_MARKERS: Final[tuple[str, ...]] = (
    "insufficient funds",
)
_REVERT_MARKERS: Final[tuple[str, ...]] = (
    "execution reverted",
    "revert",
)


def _error_message(exc: BaseException) -> str:
    # Older providers raise ValueError({"code": ..., "message": ...})
    if exc.args and isinstance(exc.args[0], dict):
        return str(exc.args[0].get("message") or exc.args[0])
    return str(exc) or type(exc).__name__


def classify_action_error(exc: BaseException, *, context: str) -> ActionError:
    """
    Map a web3 / provider exception onto the relayer's ActionError taxonomy.

    Node error strings are not standardized; the markers cover geth, reth,
    erigon and the common hosted providers.
    """
    if isinstance(exc, ActionError):
        return exc

    message = _error_message(exc)
    lowered = message.lower()

    if any(m in lowered for m in _NONCE_CONFLICT_MARKERS):
        return NonceConflictError(f"{context}: {message}")
    if any(m in lowered for m in _INSUFFICIENT_FUNDS_MARKERS):
        return InsufficientBalanceError(f"{context}: {message}")
    if isinstance(exc, ContractLogicError) or any(m in lowered for m in _REVERT_MARKERS):
        return TransactionRevertedError(f"{context}: {message}")
    if isinstance(exc, TimeExhausted):
        return ConfirmationTimeoutError(f"{context}: {message}")
    return RpcSubmissionError(f"{context}: {message}")


def bytes32_topic(value: bytes) -> str:
    if len(value) != 32:
        raise ValueError(f"Expected 32 bytes, got len={len(value)}")
    return "0x" + value.hex()


def address_topic(address: str) -> str:
    return "0x" + bytes.fromhex(to_checksum_address(address)[2:]).rjust(32, b"\x00").hex()


class Web3ContractClient:
    """
    Signed access to one contract on one chain.

    - transact(): build, sign locally, send, wait for one confirmation.
    - find_first_log(): earliest matching log in a lookback window whose
      transaction hash is not excluded.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        chain: Chain,
        contract_address: str,
        abi: list[dict[str, Any]],
        account: LocalAccount,
        receipt_timeout_s: float = 180.0,
        lookback_blocks: int = 50_000,
        block_batch_size: int = _DEFAULT_BLOCK_BATCH_SIZE,
    ) -> None:
        if block_batch_size <= 0:
            raise ValueError("block_batch_size must be positive")
        self._w3 = w3
        self.chain = chain
        self._address = to_checksum_address(contract_address)
        self._contract = w3.eth.contract(address=self._address, abi=abi)
        self._account = account
        self._receipt_timeout_s = receipt_timeout_s
        self._lookback_blocks = lookback_blocks
        self._block_batch_size = block_batch_size
        self._chain_id: int | None = None

    @property
    def sender(self) -> str:
        return self._account.address

    async def transact(self, fn_name: str, *args: Any) -> str:
        context = f"{self.chain.value} {fn_name}"

        try:
            fn = getattr(self._contract.functions, fn_name)(*args)
            if self._chain_id is None:
                self._chain_id = int(await self._w3.eth.chain_id)
            nonce = await self._w3.eth.get_transaction_count(self._account.address, "pending")
            # build_transaction runs eth_estimateGas: reverts surface here
            tx = await fn.build_transaction(
                {
                    "from": self._account.address,
                    "nonce": nonce,
                    "chainId": self._chain_id,
                }
            )
            signed = self._account.sign_transaction(tx)
            sent = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise classify_action_error(exc, context=context) from exc

        tx_hash = Web3.to_hex(sent).lower()
        logger.info("Submitted %s: tx=%s, nonce=%s", context, tx_hash, nonce)

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                sent,
                timeout=self._receipt_timeout_s,
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeoutError(
                f"{context}: no receipt for {tx_hash} after {self._receipt_timeout_s}s",
                tx_hash=tx_hash,
            ) from exc
        except Exception as exc:
            error = classify_action_error(exc, context=context)
            error.tx_hash = tx_hash
            raise error from exc

        if receipt.get("status") != 1:
            raise TransactionRevertedError(
                f"{context}: transaction {tx_hash} reverted in block {receipt.get('blockNumber')}",
                tx_hash=tx_hash,
            )

        return Web3.to_hex(receipt["transactionHash"]).lower()

    async def find_first_log(
        self,
        *,
        topics: list[str | None],
        exclude: Collection[str],
    ) -> str | None:
        head = int(await self._w3.eth.block_number)
        current = max(head - self._lookback_blocks, 0)
        excluded = {h.lower() for h in exclude}

        while current <= head:
            batch_to = min(current + self._block_batch_size - 1, head)
            logs = await self._w3.eth.get_logs(
                {
                    "address": self._address,
                    "topics": topics,
                    "fromBlock": current,
                    "toBlock": batch_to,
                }
            )
            ordered = sorted(
                (log for log in logs if not log.get("removed")),
                key=lambda log: (int(log["blockNumber"]), int(log["logIndex"])),
            )
            for log in ordered:
                tx_hash = Web3.to_hex(log["transactionHash"]).lower()
                if tx_hash not in excluded:
                    return tx_hash
            current = batch_to + 1

        return None
