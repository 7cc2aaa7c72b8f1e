"""
Transaction review orchestration.

RiskAggregator runs one review: resolve the chain, classify the destination,
fan out the risk queries concurrently, reconcile verdicts and assemble the
report. ReviewCoordinator keeps at most one review running per wallet
session.
"""
from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..chains.chain_policy import ChainPolicy, default_chain_policy, format_native_amount
from ..chains.evm_client import AccountClassifier, ChainStateProvider
from ..core.exceptions import (
    ChainStateError,
    ChainUnresolvedError,
    ReviewSupersededError,
    SourceUnavailableError,
)
from ..core.logging import get_logger, new_trace_id
from ..services.risk_gateway import RiskSourceGateway
from .models import AccountKind, PoisoningFinding, RiskQueryKind, RiskVerdict, Transaction
from .poisoning import AddressPoisoningDetector
from .report import ACCOUNT_CLASSIFICATION, CONNECTED_ACCOUNTS, ReportBuilder, RiskReport

logger = get_logger(__name__)

QueryOutcome = Union[RiskVerdict, SourceUnavailableError]


def reconcile_verdicts(
    generic: Optional[RiskVerdict],
    address_label: Optional[RiskVerdict],
) -> Optional[RiskVerdict]:
    """
    Pick the headline verdict for a contract interaction.

    The address label verdict wins only with a strictly greater score;
    ties go to the generic transaction verdict. A missing verdict never
    wins over a present one.
    """
    if generic is None:
        return address_label
    if address_label is None:
        return generic
    if address_label.score > generic.score:
        return address_label
    return generic


class RiskAggregator:
    """
    Produces a RiskReport for one pending transaction.

    All collaborators are injected. A review holds no state between calls,
    so one aggregator may serve concurrent reviews for the same wallet.
    """

    def __init__(
        self,
        gateway: RiskSourceGateway,
        chain_state: ChainStateProvider,
        classifier: Optional[AccountClassifier] = None,
        detector: Optional[AddressPoisoningDetector] = None,
        chain_policy: Optional[ChainPolicy] = None,
    ) -> None:
        self.gateway = gateway
        self.chain_state = chain_state
        self.classifier = classifier or AccountClassifier(chain_state)
        self.detector = detector or AddressPoisoningDetector()
        self.chain_policy = chain_policy or default_chain_policy

    async def review(
        self,
        transaction: Transaction,
        origin: str,
        trace_id: Optional[str] = None,
    ) -> RiskReport:
        """
        Review a pending transaction.

        Args:
            transaction: Transaction awaiting the user's signature
            origin: Website that requested it
            trace_id: Correlation ID, generated when omitted

        Returns:
            RiskReport: Ordered report. Failed sources are listed in
            ``unavailable_sources`` rather than raised.
        """
        review_id = trace_id or new_trace_id()
        start_time = time.time()
        builder = ReportBuilder()

        try:
            chain_id = await self._resolve_chain_id()
        except ChainUnresolvedError as e:
            logger.warning(
                f"Review aborted: {e.message}",
                extra={'review_id': review_id, 'origin': origin}
            )
            return builder.chain_error(e.chain_id).build()

        log_extra = {'review_id': review_id, 'chain_id': chain_id, 'origin': origin}
        logger.info("Starting transaction review", extra=log_extra)

        if not self.chain_policy.is_supported(chain_id):
            accounts = await self._connected_accounts(builder, log_extra)
            await self._screen_unsupported(builder, transaction, origin, chain_id, accounts, log_extra)
            account_kind = None
        else:
            (account_kind, accounts) = await asyncio.gather(
                self._classify(builder, transaction, log_extra),
                self._connected_accounts(builder, log_extra),
            )
            if account_kind is AccountKind.EXTERNALLY_OWNED:
                await self._screen_transfer(builder, transaction, origin, chain_id, accounts, log_extra)
            else:
                await self._screen_interaction(builder, transaction, origin, chain_id, accounts, log_extra)

        report = builder.for_chain(chain_id, account_kind).build()

        logger.info(
            "Transaction review completed",
            extra={
                **log_extra,
                'extra_data': {
                    'account_kind': account_kind.value if account_kind else None,
                    'sections': [kind.value for kind in report.kinds()],
                    'unavailable_sources': list(report.unavailable_sources),
                    'review_time_ms': (time.time() - start_time) * 1000,
                }
            }
        )
        return report

    async def _resolve_chain_id(self) -> str:
        try:
            chain_id = await self.chain_state.resolve_chain_id()
        except ChainStateError as e:
            raise ChainUnresolvedError(None) from e
        if not isinstance(chain_id, str) or not chain_id.strip():
            raise ChainUnresolvedError(chain_id)
        return chain_id.strip()

    async def _classify(self, builder: ReportBuilder, transaction: Transaction, log_extra: Dict) -> AccountKind:
        try:
            return await self.classifier.classify(transaction.to)
        except ChainStateError as e:
            # Unknown destination is screened as an interaction
            logger.warning(f"Account classification failed: {e.message}", extra=log_extra)
            builder.source_unavailable(ACCOUNT_CLASSIFICATION)
            return AccountKind.CONTRACT

    async def _connected_accounts(self, builder: ReportBuilder, log_extra: Dict) -> List[str]:
        try:
            return list(await self.chain_state.list_connected_accounts())
        except ChainStateError as e:
            logger.warning(f"Connected accounts unavailable: {e.message}", extra=log_extra)
            builder.source_unavailable(CONNECTED_ACCOUNTS)
            return []

    async def _query(
        self,
        kind: RiskQueryKind,
        origin: str,
        transaction: Transaction,
        chain_id: str,
        log_extra: Dict,
    ) -> QueryOutcome:
        try:
            return await self.gateway.query(kind, origin, transaction, chain_id)
        except SourceUnavailableError as e:
            logger.warning(
                f"Risk source {kind.value} unavailable: {e.reason}",
                extra={**log_extra, 'query_kind': kind.value}
            )
            return e

    @staticmethod
    def _accept(builder: ReportBuilder, kind: RiskQueryKind, outcome: QueryOutcome) -> Optional[RiskVerdict]:
        if isinstance(outcome, SourceUnavailableError):
            builder.source_unavailable(kind.value)
            return None
        return outcome

    def _add_findings(self, builder: ReportBuilder, findings: Sequence[PoisoningFinding]) -> None:
        for finding in findings:
            builder.poisoning_warning(finding)

    def _add_url_risk(self, builder: ReportBuilder, origin: str, outcome: QueryOutcome) -> None:
        verdict = self._accept(builder, RiskQueryKind.URL_RISK, outcome)
        if verdict is not None:
            builder.url_risk(origin, verdict)

    def _add_transfer(self, builder: ReportBuilder, transaction: Transaction, chain_id: str) -> None:
        builder.transfer_details(
            transaction,
            format_native_amount(transaction.value),
            self.chain_policy.native_symbol(chain_id),
        )

    async def _screen_unsupported(
        self,
        builder: ReportBuilder,
        transaction: Transaction,
        origin: str,
        chain_id: str,
        accounts: List[str],
        log_extra: Dict,
    ) -> None:
        url_outcome = await self._query(RiskQueryKind.URL_RISK, origin, transaction, chain_id, log_extra)
        self._add_findings(builder, self.detector.detect(accounts, [transaction.to]))
        self._add_url_risk(builder, origin, url_outcome)
        builder.unsupported_chain(self.chain_policy.supported_chain_names)

    async def _screen_transfer(
        self,
        builder: ReportBuilder,
        transaction: Transaction,
        origin: str,
        chain_id: str,
        accounts: List[str],
        log_extra: Dict,
    ) -> None:
        label_outcome, url_outcome = await asyncio.gather(
            self._query(RiskQueryKind.ADDRESS_LABEL_RISK, origin, transaction, chain_id, log_extra),
            self._query(RiskQueryKind.URL_RISK, origin, transaction, chain_id, log_extra),
        )
        self._add_findings(builder, self.detector.detect(accounts, [transaction.to]))

        label = self._accept(builder, RiskQueryKind.ADDRESS_LABEL_RISK, label_outcome)
        if label is not None:
            builder.screening(label, condense_unknown=True)
        self._add_url_risk(builder, origin, url_outcome)
        self._add_transfer(builder, transaction, chain_id)

    async def _generic_with_poisoning(
        self,
        transaction: Transaction,
        origin: str,
        chain_id: str,
        accounts: List[str],
        log_extra: Dict,
    ) -> Tuple[QueryOutcome, List[PoisoningFinding]]:
        outcome = await self._query(RiskQueryKind.GENERIC_TRANSACTION_RISK, origin, transaction, chain_id, log_extra)
        candidates: List[Optional[str]] = [transaction.to]
        if isinstance(outcome, RiskVerdict):
            candidates.extend(outcome.address_params())
        return outcome, self.detector.detect(accounts, candidates)

    async def _screen_interaction(
        self,
        builder: ReportBuilder,
        transaction: Transaction,
        origin: str,
        chain_id: str,
        accounts: List[str],
        log_extra: Dict,
    ) -> None:
        (generic_outcome, findings), label_outcome, url_outcome = await asyncio.gather(
            self._generic_with_poisoning(transaction, origin, chain_id, accounts, log_extra),
            self._query(RiskQueryKind.ADDRESS_LABEL_RISK, origin, transaction, chain_id, log_extra),
            self._query(RiskQueryKind.URL_RISK, origin, transaction, chain_id, log_extra),
        )
        self._add_findings(builder, findings)

        generic = self._accept(builder, RiskQueryKind.GENERIC_TRANSACTION_RISK, generic_outcome)
        label = self._accept(builder, RiskQueryKind.ADDRESS_LABEL_RISK, label_outcome)
        headline = reconcile_verdicts(generic, label)
        if headline is not None:
            builder.screening(headline)

        self._add_url_risk(builder, origin, url_outcome)

        if transaction.value > 0:
            self._add_transfer(builder, transaction, chain_id)

        if generic is not None and generic.has_decoded_function:
            builder.function_call(generic)


class ReviewCoordinator:
    """
    Runs reviews keyed by wallet session.

    Submitting a review for a session that already has one in flight cancels
    the older review; its caller receives ReviewSupersededError.
    """

    def __init__(self) -> None:
        self._active: Dict[str, asyncio.Task] = {}
        self._cancel_reasons: Dict[asyncio.Task, str] = {}

    def is_active(self, session_id: str) -> bool:
        task = self._active.get(session_id)
        return task is not None and not task.done()

    async def submit(
        self,
        session_id: str,
        aggregator: RiskAggregator,
        transaction: Transaction,
        origin: str,
        trace_id: Optional[str] = None,
    ) -> RiskReport:
        """
        Run a review for a session, superseding any review still running.

        Raises:
            ReviewSupersededError: A newer review replaced this one, or the
                session's review was cancelled
        """
        previous = self._active.get(session_id)
        if previous is not None and not previous.done():
            logger.info(
                "Superseding in-flight review",
                extra={'extra_data': {'session_id': session_id}}
            )
            self._cancel_reasons[previous] = "superseded"
            previous.cancel()

        task = asyncio.create_task(aggregator.review(transaction, origin, trace_id=trace_id))
        self._active[session_id] = task
        try:
            return await task
        except asyncio.CancelledError:
            reason = self._cancel_reasons.pop(task, None)
            # No reason recorded means this caller itself was cancelled
            if task.cancelled() and reason is not None:
                raise ReviewSupersededError(session_id, reason) from None
            raise
        finally:
            self._cancel_reasons.pop(task, None)
            if self._active.get(session_id) is task:
                del self._active[session_id]

    def cancel(self, session_id: str) -> bool:
        """
        Cancel the running review for a session, e.g. when the user rejects
        the transaction. Returns True if a review was cancelled.
        """
        task = self._active.pop(session_id, None)
        if task is None or task.done():
            return False
        self._cancel_reasons[task] = "cancelled"
        task.cancel()
        return True
