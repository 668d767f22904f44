import pytest
from eth_utils import keccak

from wrapper_relayer.app.infrastructure.decoders.ethscription_event_decoder import (
    EthscriptionEventDecoder,
)
from wrapper_relayer.app.registry.contracts import VAULT_ABI_PATH, WRAPPED_ABI_PATH

ID = bytes.fromhex("ab" * 32)
OWNER = bytes.fromhex("cd" * 20)


def _address_topic(raw: bytes) -> bytes:
    return raw.rjust(32, b"\x00")


def test_deposited_signature_and_topic0():
    decoder = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Deposited")

    assert decoder.event_signature == "Deposited(bytes32,address)"
    assert decoder.topic0 == keccak(text="Deposited(bytes32,address)")


def test_decode_deposited():
    decoder = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Deposited")

    decoded = decoder.decode(
        topic0=decoder.topic0,
        topic1=ID,
        topic2=_address_topic(OWNER),
        topic3=None,
        data=b"",
    )

    assert decoded == {"ethscriptionId": ID, "owner": OWNER}


def test_decode_burned():
    decoder = EthscriptionEventDecoder(abi_path=WRAPPED_ABI_PATH, event_name="Burned")

    decoded = decoder.decode(
        topic0=keccak(text="Burned(bytes32,address)"),
        topic1=ID,
        topic2=_address_topic(OWNER),
        topic3=None,
        data=b"",
    )

    assert decoded == {"ethscriptionId": ID, "owner": OWNER}


def test_transfer_token_id_is_int():
    decoder = EthscriptionEventDecoder(abi_path=WRAPPED_ABI_PATH, event_name="Transfer")

    decoded = decoder.decode(
        topic0=decoder.topic0,
        topic1=bytes(32),
        topic2=_address_topic(OWNER),
        topic3=ID,
        data=b"",
    )

    assert decoded["from"] == bytes(20)
    assert decoded["to"] == OWNER
    assert decoded["tokenId"] == int.from_bytes(ID, "big")


def test_other_topic0_is_ignored():
    decoder = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Deposited")

    assert decoder.decode(
        topic0=keccak(text="Withdrawn(bytes32,address)"),
        topic1=ID,
        topic2=_address_topic(OWNER),
        topic3=None,
        data=b"",
    ) is None
    assert decoder.decode(topic0=None, topic1=None, topic2=None, topic3=None, data=b"") is None


def test_missing_indexed_topic_is_ignored():
    decoder = EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Deposited")

    assert decoder.decode(
        topic0=decoder.topic0, topic1=ID, topic2=None, topic3=None, data=b""
    ) is None


def test_unknown_event_name():
    with pytest.raises(ValueError, match="not found"):
        EthscriptionEventDecoder(abi_path=VAULT_ABI_PATH, event_name="Minted")
