"""
Tests for chain support policy and native amount formatting.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from txguard.chains.chain_policy import (
    UNSUPPORTED_NATIVE_SYMBOL,
    ChainPolicy,
    default_chain_policy,
    format_native_amount,
    normalize_chain_id,
)


class TestChainPolicy:
    """Test suite for ChainPolicy."""

    @pytest.mark.parametrize("chain_id", ["0x1", "0x38", "0X38", " 0x1 "])
    def test_supported_chains(self, chain_id):
        assert default_chain_policy.is_supported(chain_id)

    @pytest.mark.parametrize("chain_id", ["0x89", "0xa4b1", "", None, 1, 56])
    def test_unsupported_or_malformed_chains(self, chain_id):
        assert not default_chain_policy.is_supported(chain_id)

    def test_native_symbols(self):
        assert default_chain_policy.native_symbol("0x1") == "ETH"
        assert default_chain_policy.native_symbol("0x38") == "BNB"
        assert default_chain_policy.native_symbol("0x89") == UNSUPPORTED_NATIVE_SYMBOL
        assert default_chain_policy.native_symbol(None) == UNSUPPORTED_NATIVE_SYMBOL

    def test_supported_chain_names_follow_policy(self):
        assert default_chain_policy.supported_chain_names == ("BSC Mainnet", "ETH Mainnet")

    def test_custom_policy(self):
        policy = ChainPolicy({"0x89": "POL"})
        assert policy.is_supported("0x89")
        assert not policy.is_supported("0x1")
        assert policy.supported_chain_names == ("0x89",)

    @pytest.mark.parametrize("chain_id,expected", [
        (" 0x1 ", "0x1"),
        ("0X38", "0x38"),
        ("  ", None),
        (56, None),
        (None, None),
    ])
    def test_normalize_chain_id(self, chain_id, expected):
        assert normalize_chain_id(chain_id) == expected


class TestFormatNativeAmount:
    """Test suite for wei to whole-token formatting."""

    @pytest.mark.parametrize("value,expected", [
        (0, "0"),
        (10 ** 16, "0.01"),
        (10 ** 18, "1"),
        (1234500000000000000, "1.2345"),
        (25 * 10 ** 18, "25"),
        (1, "0.000000000000000001"),
        (10 ** 28 + 1, "10000000000.000000000000000001"),
        (
            2 ** 256 - 1,
            "115792089237316195423570985008687907853269984665640564039457.584007913129639935",
        ),
    ])
    def test_format(self, value, expected):
        assert format_native_amount(value) == expected
