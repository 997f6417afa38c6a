from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from mintbot.engine.errors import ConfigurationError

SIMPLE_MINT_FUNCTION = "mint"


def mint_function_abi(function_name: str) -> Dict[str, Any]:
    """ABI entry for ``function <name>(uint256 _count) payable``."""
    return {
        "inputs": [{"internalType": "uint256", "name": "_count", "type": "uint256"}],
        "name": function_name,
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    }


SIMPLE_MINT_ABI: List[Dict[str, Any]] = [mint_function_abi(SIMPLE_MINT_FUNCTION)]


def build_abi(function_name: str, abi_override: Optional[str] = None) -> List[Dict[str, Any]]:
    """Parse ``abi_override`` JSON, or build a one-function ABI from ``function_name``.

    Raises:
        ConfigurationError: If the override is not a JSON list or lacks the function.
    """
    if not abi_override or not abi_override.strip():
        return [mint_function_abi(function_name)]

    try:
        abi = json.loads(abi_override)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"ABI_OVERRIDE is not valid JSON: {e}") from e

    if not isinstance(abi, list) or not all(isinstance(entry, dict) for entry in abi):
        raise ConfigurationError("ABI_OVERRIDE must be a JSON list of ABI entries")

    names = {entry.get("name") for entry in abi if entry.get("type", "function") == "function"}
    if function_name not in names:
        raise ConfigurationError(f"ABI_OVERRIDE has no function named {function_name!r}")
    return abi


def abi_for_mode(
    mode: str,
    function_name: str,
    abi_override: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], str]:
    """Return ``(abi, function_name)`` for a run mode.

    ``simple`` always calls ``mint(uint256)``; the other modes honour the
    configured function name and ABI override.
    """
    if mode == "simple":
        return SIMPLE_MINT_ABI, SIMPLE_MINT_FUNCTION
    return build_abi(function_name, abi_override), function_name
