"""
Chain support policy: which chains receive full screening, and what their
native token is called.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

# Hex chain id -> native token symbol. Only these chains get full screening.
SUPPORTED_CHAINS: Dict[str, str] = {
    "0x38": "BNB",  # BNB Smart Chain mainnet
    "0x1": "ETH",   # Ethereum mainnet
}

SUPPORTED_CHAIN_NAMES: Dict[str, str] = {
    "0x38": "BSC Mainnet",
    "0x1": "ETH Mainnet",
}

UNSUPPORTED_NATIVE_SYMBOL = "native token"

NATIVE_DECIMALS = 18


def normalize_chain_id(chain_id: Any) -> Optional[str]:
    """Lowercase, stripped hex chain id, or None when absent or not a string."""
    if not isinstance(chain_id, str):
        return None
    normalized = chain_id.strip().lower()
    return normalized or None


class ChainPolicy:
    """Read-only lookup of chain support. Never raises."""

    def __init__(self, supported: Optional[Dict[str, str]] = None) -> None:
        self._supported = dict(supported if supported is not None else SUPPORTED_CHAINS)

    def is_supported(self, chain_id: Any) -> bool:
        normalized = normalize_chain_id(chain_id)
        return normalized is not None and normalized in self._supported

    def native_symbol(self, chain_id: Any) -> str:
        normalized = normalize_chain_id(chain_id)
        if normalized is None:
            return UNSUPPORTED_NATIVE_SYMBOL
        return self._supported.get(normalized, UNSUPPORTED_NATIVE_SYMBOL)

    @property
    def supported_chain_ids(self) -> tuple:
        return tuple(self._supported)

    @property
    def supported_chain_names(self) -> tuple:
        return tuple(SUPPORTED_CHAIN_NAMES.get(chain_id, chain_id) for chain_id in self._supported)


def format_native_amount(value: int, decimals: int = NATIVE_DECIMALS) -> str:
    """
    Render a base-unit amount as a decimal string in whole tokens.

    Args:
        value: Amount in base units (wei)
        decimals: Token decimals

    Returns:
        Decimal string with trailing zeros trimmed ("0.01", "1", "0")
    """
    whole, fraction = divmod(value, 10 ** decimals)
    if not fraction:
        return str(whole)
    return f"{whole}.{fraction:0{decimals}d}".rstrip("0")


default_chain_policy = ChainPolicy()
