"""
Risk source gateway for the external risk data provider.

Issues the named risk queries (URL, address label, contract interaction,
generic transaction) and normalizes every provider response into a
RiskVerdict. Failures are never converted into a default verdict.
"""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..analysis.models import FunctionParam, RiskQueryKind, RiskVerdict, Transaction
from ..core.exceptions import SourceUnavailableError
from ..core.logging import get_logger
from ..core.retry import RetryConfig, call_with_retry
from ..core.settings import Settings, get_settings

logger = get_logger(__name__)


# Provider business identifiers per query kind
BUSINESS_NAMES: Dict[RiskQueryKind, str] = {
    RiskQueryKind.URL_RISK: "hashdit_snap_tx_api_url_detection",
    RiskQueryKind.ADDRESS_LABEL_RISK: "internal_address_lables_tags",
    RiskQueryKind.CONTRACT_INTERACTION_RISK: "hashdit_snap_tx_api_contract_interaction",
    RiskQueryKind.GENERIC_TRANSACTION_RISK: "hashdit_snap_tx_api_transaction_request",
}


class RiskTransport(Protocol):
    """Capability to fetch a raw provider response for a named query."""

    async def fetch(self, business: str, params: Dict[str, Any]) -> Dict[str, Any]:
        ...


class UrlRiskResponse(BaseModel):
    """Provider payload for URL risk."""
    model_config = ConfigDict(extra="ignore")

    url_risk: int
    url_risk_title: str = ""


class AddressRiskResponse(BaseModel):
    """Provider payload for address label risk."""
    model_config = ConfigDict(extra="ignore")

    overall_risk: int
    overall_risk_title: str = ""
    overall_risk_detail: str = ""
    transaction_risk_detail: str = ""

    @field_validator("overall_risk_title", "overall_risk_detail", "transaction_risk_detail", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class InteractionRiskResponse(AddressRiskResponse):
    """Provider payload for contract interaction and generic transaction risk."""

    url_risk: Optional[int] = None
    url_risk_title: str = ""
    function_name: str = ""
    function_params: List[FunctionParam] = []

    @field_validator("function_name", "url_risk_title", mode="before")
    @classmethod
    def none_name_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("function_params", mode="before")
    @classmethod
    def none_params_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


def _normalize(kind: RiskQueryKind, data: Dict[str, Any]) -> RiskVerdict:
    """Map a raw provider payload onto a RiskVerdict. Raises ValidationError."""
    if kind is RiskQueryKind.URL_RISK:
        url = UrlRiskResponse.model_validate(data)
        return RiskVerdict(kind=kind, score=url.url_risk, title=url.url_risk_title)

    if kind is RiskQueryKind.ADDRESS_LABEL_RISK:
        address = AddressRiskResponse.model_validate(data)
        return RiskVerdict(
            kind=kind,
            score=address.overall_risk,
            title=address.overall_risk_title,
            detail=address.overall_risk_detail,
            transaction_detail=address.transaction_risk_detail,
        )

    interaction = InteractionRiskResponse.model_validate(data)
    return RiskVerdict(
        kind=kind,
        score=interaction.overall_risk,
        title=interaction.overall_risk_title,
        detail=interaction.overall_risk_detail,
        transaction_detail=interaction.transaction_risk_detail,
        function_name=interaction.function_name,
        function_params=interaction.function_params,
    )


class RiskSourceGateway:
    """
    Issues risk queries through an injected transport.

    The gateway validates query inputs, builds request parameters, and
    normalizes responses. It does not interpret scores.
    """

    def __init__(
        self,
        transport: RiskTransport,
        business_names: Optional[Dict[RiskQueryKind, str]] = None,
    ) -> None:
        self.transport = transport
        self.business_names = dict(business_names or BUSINESS_NAMES)

    async def query(
        self,
        kind: RiskQueryKind,
        origin: str,
        transaction: Optional[Transaction] = None,
        chain_id: Optional[str] = None,
    ) -> RiskVerdict:
        """
        Run one risk query.

        Args:
            kind: Which query to issue
            origin: Website that requested the transaction
            transaction: Pending transaction (required except for URL risk)
            chain_id: Chain identifier (required except for URL risk)

        Returns:
            RiskVerdict: Normalized verdict

        Raises:
            ValueError: Required inputs missing for this kind
            SourceUnavailableError: Transport failure, timeout or malformed response
        """
        if kind.requires_transaction and (transaction is None or not chain_id):
            raise ValueError(f"{kind.value} requires a transaction and chain id")

        params: Dict[str, Any] = {"url": origin}
        if kind.requires_transaction:
            params["chain_id"] = chain_id
            params["transaction"] = transaction.to_rpc_dict()  # type: ignore[union-attr]

        start_time = time.time()
        log_extra = {"query_kind": kind.value, "origin": origin, "chain_id": chain_id}

        try:
            data = await self.transport.fetch(self.business_names[kind], params)
        except SourceUnavailableError as e:
            logger.warning(f"Risk query {kind.value} unavailable: {e.reason}", extra=log_extra)
            raise SourceUnavailableError(
                kind.value, e.reason, details={"provider_business": e.source}
            ) from e
        except TimeoutError as e:
            logger.warning(f"Risk query {kind.value} timed out", extra=log_extra)
            raise SourceUnavailableError(kind.value, "timeout") from e
        except Exception as e:
            logger.error(f"Risk query {kind.value} failed: {e}", extra=log_extra)
            raise SourceUnavailableError(kind.value, str(e) or type(e).__name__) from e

        if not isinstance(data, dict):
            raise SourceUnavailableError(kind.value, "response is not an object")

        try:
            verdict = _normalize(kind, data)
        except ValidationError as e:
            logger.error(
                f"Malformed {kind.value} response",
                extra={**log_extra, 'extra_data': {'errors': e.errors(include_url=False)}}
            )
            raise SourceUnavailableError(kind.value, "malformed response") from e

        logger.info(
            f"Risk query {kind.value} completed",
            extra={
                **log_extra,
                'extra_data': {
                    'score': verdict.score,
                    'title': verdict.title,
                    'response_time_ms': (time.time() - start_time) * 1000,
                }
            }
        )
        return verdict


class HttpRiskTransport:
    """
    httpx transport for the risk data provider.

    POSTs ``{"business": ..., "params": ...}`` to the detect endpoint.
    Connection errors and timeouts are retried with backoff; HTTP error
    statuses, non-JSON bodies and provider error codes are not.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.risk_api_timeout_seconds, connect=min(5.0, self.settings.risk_api_timeout_seconds)),
            headers={"User-Agent": f"TxGuard/{self.settings.version}"},
        )
        self.retry_config = RetryConfig(
            max_attempts=self.settings.risk_api_max_attempts,
            initial_delay=0.25,
            max_delay=2.0,
            retryable_exceptions=(httpx.TransportError,),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.risk_api_app_id:
            headers["X-Signature-AppId"] = self.settings.risk_api_app_id
        if self.settings.risk_api_key:
            headers["X-API-Key"] = self.settings.risk_api_key
        return headers

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        response = await self.client.post(
            self.settings.risk_api_base_url,
            json=payload,
            headers=self._headers(),
        )
        response.raise_for_status()
        return response

    async def fetch(self, business: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fetch the provider payload for a business query.

        Raises:
            SourceUnavailableError: On any transport or provider failure
        """
        payload = {"business": business, "params": params}

        try:
            response = await call_with_retry(self.retry_config, self._post, payload)
        except httpx.TimeoutException as e:
            raise SourceUnavailableError(business, "timeout") from e
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                business, f"HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(business, f"transport error: {type(e).__name__}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise SourceUnavailableError(business, "response is not JSON") from e

        if not isinstance(body, dict):
            raise SourceUnavailableError(business, "response is not an object")

        code = body.get("code", 0)
        if str(code) not in ("0", "200"):
            raise SourceUnavailableError(
                business, f"provider error {code}: {body.get('message', '')}".strip(),
                details={"provider_code": code}
            )

        data = body.get("data", body)
        if not isinstance(data, dict):
            raise SourceUnavailableError(business, "response data is not an object")
        return data

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self.client.aclose()
