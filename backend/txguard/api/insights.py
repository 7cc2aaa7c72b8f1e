"""
Security insights endpoints.

The wallet host posts a pending transaction together with the chain id and
connected accounts it reports; the response is the ordered risk report.
"""
from __future__ import annotations

import functools
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from ..analysis.aggregator import ReviewCoordinator, RiskAggregator
from ..analysis.models import Transaction
from ..chains.chain_policy import SUPPORTED_CHAIN_NAMES, default_chain_policy
from ..chains.evm_client import ChainStateProvider, EvmChainState
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger, new_trace_id
from ..core.settings import Settings, get_settings
from ..services.risk_gateway import RiskSourceGateway

logger = get_logger(__name__)
router = APIRouter(prefix="/insights", tags=["insights"])

ChainStateFactory = Callable[[Any, Sequence[str]], ChainStateProvider]


class TransactionReviewRequest(BaseModel):
    """Pending transaction plus the wallet context it was requested in."""

    transaction: Transaction
    origin: str = Field(..., min_length=1, description="Website that requested the transaction")
    chain_id: Optional[Any] = Field(None, description="Hex chain id reported by the wallet")
    accounts: List[str] = Field(default_factory=list, description="User's connected accounts")
    session_id: Optional[str] = Field(
        None, description="Wallet session; a newer review supersedes a running one"
    )


def get_risk_gateway(request: Request) -> RiskSourceGateway:
    """Shared gateway created at startup."""
    gateway = getattr(request.app.state, "risk_gateway", None)
    if gateway is None:
        raise ConfigurationError("Risk gateway not initialized", error_code="GATEWAY_NOT_READY")
    return gateway


def get_review_coordinator(request: Request) -> ReviewCoordinator:
    coordinator = getattr(request.app.state, "review_coordinator", None)
    if coordinator is None:
        coordinator = ReviewCoordinator()
        request.app.state.review_coordinator = coordinator
    return coordinator


def get_chain_state_factory(settings: Settings = Depends(get_settings)) -> ChainStateFactory:
    return functools.partial(EvmChainState, settings=settings)


@router.post("/transaction")
async def review_transaction(
    body: TransactionReviewRequest,
    gateway: RiskSourceGateway = Depends(get_risk_gateway),
    coordinator: ReviewCoordinator = Depends(get_review_coordinator),
    chain_state_factory: ChainStateFactory = Depends(get_chain_state_factory),
) -> Dict[str, Any]:
    """
    Review a pending transaction and return its risk report.

    Returns:
        Serialized RiskReport with ``trace_id`` and ``complete`` flags added

    Raises:
        ReviewSupersededError: A newer review for the same session replaced this one
    """
    trace_id = new_trace_id()
    aggregator = RiskAggregator(gateway, chain_state_factory(body.chain_id, body.accounts))

    logger.info(
        "Transaction review requested",
        extra={
            'trace_id': trace_id,
            'origin': body.origin,
            'extra_data': {'session_id': body.session_id, 'to': body.transaction.to}
        }
    )

    if body.session_id:
        report = await coordinator.submit(
            body.session_id, aggregator, body.transaction, body.origin, trace_id=trace_id
        )
    else:
        report = await aggregator.review(body.transaction, body.origin, trace_id=trace_id)

    return {
        "trace_id": trace_id,
        "complete": report.is_complete,
        **report.model_dump(mode="json"),
    }


@router.get("/health")
async def insights_health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Service status and the chains that receive full screening."""
    return {
        "status": "OK",
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "supported_chains": {
            chain_id: SUPPORTED_CHAIN_NAMES.get(chain_id, chain_id)
            for chain_id in default_chain_policy.supported_chain_ids
        },
    }
