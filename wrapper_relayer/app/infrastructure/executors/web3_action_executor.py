from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Final

from wrapper_relayer.app.infrastructure.executors.web3_contract_client import (
    Web3ContractClient,
    address_topic,
    bytes32_topic,
)


logger = logging.getLogger(__name__)

_ZERO_ADDRESS: Final[str] = "0x" + "00" * 20


class Web3ActionExecutor:
    """
    ActionExecutor + CounterpartLocator over two contract clients.

    - mint() calls WrappedEthscription.mint on mainnet.
    - withdraw() calls EthscriptionVault.withdraw on the appchain.
    - find_mint() looks for Transfer(0x0, owner, tokenId) with
      tokenId == uint256(ethscriptionId).
    - find_withdrawal() looks for Withdrawn(ethscriptionId, to).
    """

    def __init__(
        self,
        *,
        wrapped: Web3ContractClient,
        vault: Web3ContractClient,
        transfer_topic0: bytes,
        withdrawn_topic0: bytes,
    ) -> None:
        self._wrapped = wrapped
        self._vault = vault
        self._transfer_topic0 = "0x" + transfer_topic0.hex()
        self._withdrawn_topic0 = "0x" + withdrawn_topic0.hex()

    async def mint(self, *, ethscription_id: bytes, owner: str) -> str:
        tx_hash = await self._wrapped.transact("mint", ethscription_id, owner)
        logger.info(
            "Mint confirmed: ethscription_id=0x%s, owner=%s, tx=%s",
            ethscription_id.hex(),
            owner,
            tx_hash,
        )
        return tx_hash

    async def withdraw(self, *, ethscription_id: bytes, to: str) -> str:
        tx_hash = await self._vault.transact("withdraw", ethscription_id, to)
        logger.info(
            "Withdraw confirmed: ethscription_id=0x%s, to=%s, tx=%s",
            ethscription_id.hex(),
            to,
            tx_hash,
        )
        return tx_hash

    async def find_mint(
        self, *, ethscription_id: bytes, owner: str, exclude: Collection[str]
    ) -> str | None:
        return await self._wrapped.find_first_log(
            topics=[
                self._transfer_topic0,
                address_topic(_ZERO_ADDRESS),
                address_topic(owner),
                bytes32_topic(ethscription_id),
            ],
            exclude=exclude,
        )

    async def find_withdrawal(
        self, *, ethscription_id: bytes, to: str, exclude: Collection[str]
    ) -> str | None:
        return await self._vault.find_first_log(
            topics=[
                self._withdrawn_topic0,
                bytes32_topic(ethscription_id),
                address_topic(to),
            ],
            exclude=exclude,
        )
