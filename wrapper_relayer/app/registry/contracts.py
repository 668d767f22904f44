from __future__ import annotations

import json
from pathlib import Path
from typing import Any

ABI_DIR = Path(__file__).resolve().parent / "abi"

VAULT_ABI_PATH = ABI_DIR / "EthscriptionVault.json"
WRAPPED_ABI_PATH = ABI_DIR / "WrappedEthscription.json"


def load_abi(abi_path: Path) -> list[dict[str, Any]]:
    """Load an ABI stored either as a bare list or as a Hardhat/Foundry artifact."""
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI file not found: {abi_path}")
    data = json.loads(abi_path.read_text(encoding="utf-8"))

    if isinstance(data, list):
        abi = data
    elif isinstance(data, dict) and "abi" in data and isinstance(data["abi"], list):
        abi = data["abi"]
    else:
        raise ValueError(
            f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
        )

    return [x for x in abi if isinstance(x, dict)]


def event_signature(event_abi: dict[str, Any]) -> str:
    name = event_abi.get("name")
    inputs = event_abi.get("inputs", [])
    if not isinstance(name, str) or not isinstance(inputs, list):
        raise ValueError("Invalid event ABI: missing name/inputs")
    types: list[str] = []
    for inp in inputs:
        if not isinstance(inp, dict) or "type" not in inp:
            raise ValueError("Invalid event ABI inputs")
        types.append(inp["type"])
    return f"{name}({','.join(types)})"
