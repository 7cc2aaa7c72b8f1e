"""
Tests for the insights HTTP API.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from fastapi.testclient import TestClient

from txguard.api.insights import get_chain_state_factory, get_risk_gateway
from txguard.analysis.models import RiskQueryKind
from txguard.main import app
from txguard.services.risk_gateway import RiskSourceGateway

from conftest import (
    CONTRACT,
    KNOWN_ACCOUNT,
    LOOKALIKE,
    RECIPIENT,
    FakeChainState,
    FakeTransport,
    interaction_payload,
)

ORIGIN = "https://app.example.org"


def _body(chain_id="0x1", to=RECIPIENT, value="0x2386f26fc10000", **extra):
    body = {
        "transaction": {"from": KNOWN_ACCOUNT, "to": to, "value": value, "data": "0x"},
        "origin": ORIGIN,
        "chain_id": chain_id,
        "accounts": [KNOWN_ACCOUNT],
    }
    body.update(extra)
    return body


class TestInsightsApi:
    """Test suite for /api/v1/insights."""

    @pytest.fixture
    def transport(self, default_responses):
        return FakeTransport(dict(default_responses))

    @pytest.fixture
    def client(self, transport):
        gateway = RiskSourceGateway(transport)
        app.dependency_overrides[get_risk_gateway] = lambda: gateway
        app.dependency_overrides[get_chain_state_factory] = lambda: (
            lambda chain_id, accounts: FakeChainState(chain_id, accounts, contracts=[CONTRACT])
        )
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_transfer_review(self, client):
        response = client.post("/api/v1/insights/transaction", json=_body())

        assert response.status_code == 200
        data = response.json()
        assert data["complete"] is True
        assert data["chain_id"] == "0x1"
        assert data["account_kind"] == "externally_owned"
        assert [s["kind"] for s in data["sections"]] == ["screening", "url_risk", "transfer_details"]
        assert data["trace_id"]

    def test_unsupported_chain(self, client, transport):
        response = client.post("/api/v1/insights/transaction", json=_body(chain_id="0x89"))

        assert response.status_code == 200
        kinds = [s["kind"] for s in response.json()["sections"]]
        assert kinds == ["url_risk", "unsupported_chain"]
        assert transport.calls == [RiskQueryKind.URL_RISK]

    def test_missing_chain_id(self, client, transport):
        body = _body()
        del body["chain_id"]

        response = client.post("/api/v1/insights/transaction", json=body)

        assert response.status_code == 200
        sections = response.json()["sections"]
        assert [s["kind"] for s in sections] == ["chain_error"]
        assert sections[0]["body"][0]["value"] == "Error: ChainId could not be retrieved (None)"
        assert transport.calls == []

    def test_poisoned_recipient(self, client):
        response = client.post(
            "/api/v1/insights/transaction",
            json=_body(to=LOOKALIKE, session_id="tab-1"),
        )

        assert response.status_code == 200
        sections = response.json()["sections"]
        assert sections[0]["kind"] == "poisoning_warning"
        address_values = [e["value"] for e in sections[0]["body"] if e["kind"] == "address"]
        assert address_values == [LOOKALIKE, KNOWN_ACCOUNT]

    def test_contract_call_with_incomplete_screening(self, client, transport):
        transport.responses[RiskQueryKind.URL_RISK] = TimeoutError()
        transport.responses[RiskQueryKind.GENERIC_TRANSACTION_RISK] = interaction_payload(
            2, "Medium Risk", function_name="approve",
            function_params=[{"name": "spender", "type": "address", "value": RECIPIENT}],
        )

        response = client.post(
            "/api/v1/insights/transaction",
            json=_body(to=CONTRACT, value="0x0"),
        )

        data = response.json()
        assert data["complete"] is False
        assert data["unavailable_sources"] == ["url_risk"]
        assert [s["kind"] for s in data["sections"]] == [
            "screening_incomplete", "screening", "function_call",
        ]

    def test_invalid_body(self, client):
        response = client.post("/api/v1/insights/transaction", json={"origin": ORIGIN})
        assert response.status_code == 422

    def test_gateway_not_initialized(self):
        app.dependency_overrides.clear()
        response = TestClient(app).post("/api/v1/insights/transaction", json=_body())

        assert response.status_code == 400
        assert response.json()["error_code"] == "GATEWAY_NOT_READY"

    def test_health(self, client):
        response = client.get("/api/v1/insights/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["supported_chains"] == {"0x38": "BSC Mainnet", "0x1": "ETH Mainnet"}
