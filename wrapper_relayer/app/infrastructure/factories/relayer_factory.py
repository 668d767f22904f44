from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from eth_account import Account
from eth_account.signers.local import LocalAccount
from sqlalchemy.ext.asyncio import AsyncEngine
from web3 import AsyncHTTPProvider, AsyncWeb3

from wrapper_relayer.app.application.services.relay_chain_events import ChainRelayService
from wrapper_relayer.app.application.services.relayer_loop import RelayerLoop
from wrapper_relayer.app.application.services.retry_policy import BackoffPolicy
from wrapper_relayer.app.config import RelayerConfig
from wrapper_relayer.app.domain.errors import ConfigurationError
from wrapper_relayer.app.domain.models import Chain, EventType
from wrapper_relayer.app.infrastructure.adapters.attempt_store import SqlAlchemyAttemptStore
from wrapper_relayer.app.infrastructure.adapters.cursor_store import SqlAlchemyCursorStore
from wrapper_relayer.app.infrastructure.adapters.event_store import SqlAlchemyEventStore
from wrapper_relayer.app.infrastructure.decoders.ethscription_event_decoder import (
    EthscriptionEventDecoder,
)
from wrapper_relayer.app.infrastructure.executors.web3_action_executor import Web3ActionExecutor
from wrapper_relayer.app.infrastructure.executors.web3_contract_client import Web3ContractClient
from wrapper_relayer.app.infrastructure.watchers.web3_chain_watcher import Web3ChainWatcher
from wrapper_relayer.app.registry.contracts import VAULT_ABI_PATH, WRAPPED_ABI_PATH, load_abi


@dataclass(frozen=True)
class RelayerComponents:
    """Everything a relayer task needs, wired from one RelayerConfig."""

    relayer_address: str
    event_store: SqlAlchemyEventStore
    cursor_store: SqlAlchemyCursorStore
    attempt_store: SqlAlchemyAttemptStore
    deposits: ChainRelayService
    burns: ChainRelayService
    loop: RelayerLoop

    @property
    def services(self) -> dict[Chain, ChainRelayService]:
        return {Chain.APPCHAIN: self.deposits, Chain.MAINNET: self.burns}


RelayerFactory = Callable[[RelayerConfig, AsyncEngine], RelayerComponents]

_RELAYER_REGISTRY: Dict[str, RelayerFactory] = {}


def _make_w3(rpc_url: str, *, timeout_s: float) -> AsyncWeb3:
    return AsyncWeb3(
        AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": timeout_s},
        )
    )


def _load_account(config: RelayerConfig) -> LocalAccount:
    try:
        return Account.from_key(config.relayer_private_key.get_secret_value())
    except (ValueError, TypeError) as exc:
        # never echo the key itself
        raise ConfigurationError("RELAYER_PRIVATE_KEY is not a valid private key") from exc


def _make_web3_relayer(config: RelayerConfig, engine: AsyncEngine) -> RelayerComponents:
    """
    Wire dependencies for the web3 backend:
    - one AsyncWeb3 provider per chain,
    - watchers for Deposited (vault, appchain) and Burned (wrapped, mainnet),
    - contract clients signing with the relayer key on both chains,
    - SQLAlchemy stores on the shared SQLite engine.
    """
    account = _load_account(config)
    appchain_w3 = _make_w3(config.appchain_rpc, timeout_s=config.rpc_timeout_s)
    mainnet_w3 = _make_w3(config.mainnet_rpc, timeout_s=config.rpc_timeout_s)

    event_store = SqlAlchemyEventStore(engine=engine)
    cursor_store = SqlAlchemyCursorStore(engine=engine)
    attempt_store = SqlAlchemyAttemptStore(engine=engine)

    deposited = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Deposited")
    withdrawn = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Withdrawn")
    burned = EthscriptionEventDecoder(abi_path=WRAPPED_ABI_PATH, event_name="Burned")
    transfer = EthscriptionEventDecoder(abi_path=WRAPPED_ABI_PATH, event_name="Transfer")

    vault_client = Web3ContractClient(
        w3=appchain_w3,
        chain=Chain.APPCHAIN,
        contract_address=config.vault_address,
        abi=load_abi(VAULT_ABI_PATH),
        account=account,
        receipt_timeout_s=config.tx_receipt_timeout_s,
        lookback_blocks=config.reconcile_lookback_blocks,
        block_batch_size=config.max_block_range,
    )
    wrapped_client = Web3ContractClient(
        w3=mainnet_w3,
        chain=Chain.MAINNET,
        contract_address=config.wrapped_address,
        abi=load_abi(WRAPPED_ABI_PATH),
        account=account,
        receipt_timeout_s=config.tx_receipt_timeout_s,
        lookback_blocks=config.reconcile_lookback_blocks,
        block_batch_size=config.max_block_range,
    )
    executor = Web3ActionExecutor(
        wrapped=wrapped_client,
        vault=vault_client,
        transfer_topic0=transfer.topic0,
        withdrawn_topic0=withdrawn.topic0,
    )

    backoff = BackoffPolicy.from_millis(
        base_delay_ms=config.retry_base_delay_ms,
        max_delay_ms=config.retry_max_delay_ms,
        max_attempts=config.max_attempts,
    )

    def _service(watcher: Web3ChainWatcher) -> ChainRelayService:
        return ChainRelayService(
            watcher=watcher,
            event_store=event_store,
            cursor_store=cursor_store,
            attempt_store=attempt_store,
            executor=executor,
            locator=executor,
            backoff=backoff,
        )

    deposits = _service(
        Web3ChainWatcher(
            w3=appchain_w3,
            chain=Chain.APPCHAIN,
            event_type=EventType.DEPOSIT,
            contract_address=config.vault_address,
            decoder=deposited,
            confirmation_depth=config.confirmation_depth,
            block_batch_size=config.max_block_range,
        )
    )
    burns = _service(
        Web3ChainWatcher(
            w3=mainnet_w3,
            chain=Chain.MAINNET,
            event_type=EventType.BURN,
            contract_address=config.wrapped_address,
            decoder=burned,
            confirmation_depth=config.confirmation_depth,
            block_batch_size=config.max_block_range,
        )
    )

    return RelayerComponents(
        relayer_address=account.address,
        event_store=event_store,
        cursor_store=cursor_store,
        attempt_store=attempt_store,
        deposits=deposits,
        burns=burns,
        loop=RelayerLoop(services=[deposits, burns], poll_interval_s=config.poll_interval_s),
    )


# Register backends
_RELAYER_REGISTRY["web3"] = _make_web3_relayer


def relayer_factory(
    *,
    backend: str,
    config: RelayerConfig,
    engine: AsyncEngine,
) -> RelayerComponents:
    try:
        factory = _RELAYER_REGISTRY[backend]
    except KeyError:
        raise ConfigurationError(f"Unsupported relayer backend: {backend!r}")
    return factory(config, engine)
