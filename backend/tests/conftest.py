"""
Shared fakes for the review engine tests.

The risk provider and the wallet's chain state are replaced with in-memory
fakes; everything between them (gateway normalization, aggregation, report
assembly) runs for real.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from txguard.analysis.aggregator import RiskAggregator
from txguard.analysis.models import RiskQueryKind, Transaction
from txguard.core.exceptions import ChainStateError
from txguard.services.risk_gateway import BUSINESS_NAMES, RiskSourceGateway

KNOWN_ACCOUNT = "0xabcd" + "0" * 32 + "1234"
LOOKALIKE = "0xabcd" + "f" * 32 + "1234"
RECIPIENT = "0x" + "7" * 40
CONTRACT = "0x" + "c" * 40

KIND_BY_BUSINESS = {business: kind for kind, business in BUSINESS_NAMES.items()}


def url_payload(score: int = 0, title: str = "No Risk") -> Dict[str, Any]:
    return {"url_risk": score, "url_risk_title": title}


def address_payload(score: int = 0, title: str = "No Risk") -> Dict[str, Any]:
    return {
        "overall_risk": score,
        "overall_risk_title": title,
        "overall_risk_detail": f"{title} overview",
        "transaction_risk_detail": f"{title} details",
    }


def interaction_payload(
    score: int = 0,
    title: str = "No Risk",
    function_name: str = "",
    function_params: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    payload = address_payload(score, title)
    payload.update({
        "url_risk": 0,
        "url_risk_title": "",
        "function_name": function_name,
        "function_params": function_params,
    })
    return payload


class FakeTransport:
    """Risk transport answering from a per-kind table; exceptions are raised."""

    def __init__(self, responses: Dict[RiskQueryKind, Any]) -> None:
        self.responses = responses
        self.calls: List[RiskQueryKind] = []
        self.params: Dict[RiskQueryKind, Dict[str, Any]] = {}

    async def fetch(self, business: str, params: Dict[str, Any]) -> Dict[str, Any]:
        kind = KIND_BY_BUSINESS[business]
        self.calls.append(kind)
        self.params[kind] = params
        outcome = self.responses[kind]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class BlockingTransport:
    """Risk transport that never answers until cancelled."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled: List[str] = []

    async def fetch(self, business: str, params: Dict[str, Any]) -> Dict[str, Any]:
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append(business)
            raise
        return {}


class FakeChainState:
    """Wallet chain state with a fixed set of contract addresses."""

    def __init__(
        self,
        chain_id: Any = "0x1",
        accounts: Iterable[str] = (KNOWN_ACCOUNT,),
        contracts: Iterable[str] = (),
        code_error: bool = False,
    ) -> None:
        self.chain_id = chain_id
        self.accounts = list(accounts)
        self.contracts = {c.lower() for c in contracts}
        self.code_error = code_error
        self.code_lookups: List[str] = []

    async def resolve_chain_id(self) -> Optional[str]:
        return self.chain_id

    async def list_connected_accounts(self) -> List[str]:
        return list(self.accounts)

    async def has_code(self, address: str) -> bool:
        self.code_lookups.append(address)
        if self.code_error:
            raise ChainStateError(f"Bytecode lookup failed for {address}")
        return address.lower() in self.contracts


@pytest.fixture
def default_responses() -> Dict[RiskQueryKind, Any]:
    return {
        RiskQueryKind.URL_RISK: url_payload(),
        RiskQueryKind.ADDRESS_LABEL_RISK: address_payload(),
        RiskQueryKind.CONTRACT_INTERACTION_RISK: interaction_payload(),
        RiskQueryKind.GENERIC_TRANSACTION_RISK: interaction_payload(),
    }


@pytest.fixture
def transfer_tx() -> Transaction:
    return Transaction.model_validate({
        "from": KNOWN_ACCOUNT,
        "to": RECIPIENT,
        "value": hex(10 ** 16),
        "data": "0x",
    })


@pytest.fixture
def contract_tx() -> Transaction:
    return Transaction.model_validate({
        "from": KNOWN_ACCOUNT,
        "to": CONTRACT,
        "value": "0x0",
        "data": "0xa9059cbb",
    })


@pytest.fixture
def make_aggregator(default_responses):
    """Build an aggregator over a FakeTransport; returns (aggregator, transport, chain_state)."""

    def _make(responses: Optional[Dict[RiskQueryKind, Any]] = None, **chain_kwargs: Any):
        table = dict(default_responses)
        table.update(responses or {})
        transport = FakeTransport(table)
        chain_state = FakeChainState(**chain_kwargs)
        aggregator = RiskAggregator(RiskSourceGateway(transport), chain_state)
        return aggregator, transport, chain_state

    return _make
