from __future__ import annotations

from pathlib import Path
from typing import Any

from eth_abi import decode as abi_decode
from eth_utils import keccak

from wrapper_relayer.app.domain.ports.out import EvmEventDecoder
from wrapper_relayer.app.registry.contracts import event_signature, load_abi


class EthscriptionEventDecoder(EvmEventDecoder):
    """
    ABI-based decoder for the bridge contract events.

    Vault:
      event Deposited(bytes32 indexed ethscriptionId, address indexed owner)
      event Withdrawn(bytes32 indexed ethscriptionId, address indexed to)

    WrappedEthscription:
      event Burned(bytes32 indexed ethscriptionId, address indexed owner)
      event Transfer(address indexed from, address indexed to, uint256 indexed tokenId)

    Indexed inputs are read from topic1..topic3 in declaration order, the
    rest from data. Output keys are the ABI input names; addresses come out
    as 20-byte bytes, bytes32 as 32-byte bytes, integers as int.
    """

    def __init__(self, *, abi_path: Path, event_name: str) -> None:
        abi = load_abi(abi_path)
        self._event_abi = self._find_event(abi, event_name)
        self._signature = event_signature(self._event_abi)
        self._topic0 = keccak(text=self._signature)

        inputs: list[dict[str, Any]] = list(self._event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in inputs if not i.get("indexed")]

        if len(self._indexed_inputs) > 3:
            raise ValueError(
                f"Event {event_name!r} declares {len(self._indexed_inputs)} indexed inputs; at most 3 fit in topics."
            )

        self._non_indexed_types = [i["type"] for i in self._non_indexed_inputs]
        self._non_indexed_names = [i["name"] for i in self._non_indexed_inputs]

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(
        self,
        *,
        topic0: bytes | None,
        topic1: bytes | None,
        topic2: bytes | None,
        topic3: bytes | None,
        data: bytes,
    ) -> dict[str, Any] | None:
        if topic0 is None or bytes(topic0) != self._topic0:
            return None

        topics = [topic1, topic2, topic3][: len(self._indexed_inputs)]
        if any(t is None for t in topics):
            return None

        out: dict[str, Any] = {}
        for inp, topic in zip(self._indexed_inputs, topics, strict=True):
            out[inp["name"]] = self._decode_topic(inp["type"], self._as_bytes32(topic))

        if self._non_indexed_inputs:
            values = abi_decode(self._non_indexed_types, bytes(data))
            for name, typ, val in zip(
                self._non_indexed_names, self._non_indexed_types, values, strict=True
            ):
                out[name] = self._normalize_abi_value(typ, val)

        return out

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _find_event(self, abi: list[dict[str, Any]], event_name: str) -> dict[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
        if len(events) > 1:
            raise ValueError(
                f"Multiple events named {event_name!r} found in ABI. Disambiguation by full signature is required."
            )
        return events[0]

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    def _as_bytes32(self, b: bytes) -> bytes:
        bb = bytes(b)
        if len(bb) != 32:
            raise ValueError(f"Expected 32 bytes (bytes32 topic), got len={len(bb)}")
        return bb

    def _decode_topic(self, typ: str, topic: bytes) -> Any:
        if typ == "address":
            return topic[-20:]
        if typ.startswith("uint"):
            return int.from_bytes(topic, byteorder="big", signed=False)
        if typ.startswith("int"):
            return int.from_bytes(topic, byteorder="big", signed=True)
        # bytes32 and dynamic types (stored as their keccak) stay raw
        return topic

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ == "address":
            if isinstance(val, (bytes, bytearray)) and len(val) == 20:
                return bytes(val)
            if isinstance(val, str):
                # eth_abi returns "0x..." for address
                s = val.lower().removeprefix("0x").rjust(40, "0")
                return bytes.fromhex(s)
            return val

        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)

        if typ.startswith("bytes"):
            if isinstance(val, (bytes, bytearray, memoryview)):
                return bytes(val)
            return val

        return val
