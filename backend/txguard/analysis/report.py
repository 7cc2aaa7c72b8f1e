"""
Risk report data model and builder.

The report is an ordered list of typed sections. Section order is fixed by
SECTION_ORDER regardless of the order the builder methods are called in, so
the concurrent fan-out in the aggregator cannot reorder the output.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    AccountKind,
    PoisoningFinding,
    RiskQueryKind,
    RiskVerdict,
    Transaction,
)

UNKNOWN_RISK_TITLE = "Unknown Risk"


class SectionKind(str, Enum):
    """Report section types."""
    CHAIN_ERROR = "chain_error"
    POISONING_WARNING = "poisoning_warning"
    SCREENING_INCOMPLETE = "screening_incomplete"
    SCREENING = "screening"
    URL_RISK = "url_risk"
    TRANSFER_DETAILS = "transfer_details"
    FUNCTION_CALL = "function_call"
    UNSUPPORTED_CHAIN = "unsupported_chain"


SECTION_ORDER: Tuple[SectionKind, ...] = (
    SectionKind.POISONING_WARNING,
    SectionKind.SCREENING_INCOMPLETE,
    SectionKind.SCREENING,
    SectionKind.URL_RISK,
    SectionKind.TRANSFER_DETAILS,
    SectionKind.FUNCTION_CALL,
    SectionKind.UNSUPPORTED_CHAIN,
)

REPEATABLE_KINDS = frozenset({SectionKind.POISONING_WARNING})

ACCOUNT_CLASSIFICATION = "account_classification"
CONNECTED_ACCOUNTS = "connected_accounts"

SOURCE_LABELS: Dict[str, str] = {
    RiskQueryKind.URL_RISK.value: "URL screening",
    RiskQueryKind.ADDRESS_LABEL_RISK.value: "Address label screening",
    RiskQueryKind.CONTRACT_INTERACTION_RISK.value: "Contract interaction screening",
    RiskQueryKind.GENERIC_TRANSACTION_RISK.value: "Transaction screening",
    ACCOUNT_CLASSIFICATION: "Account classification",
    CONNECTED_ACCOUNTS: "Connected accounts",
}


class ElementKind(str, Enum):
    """Renderable element types."""
    TEXT = "text"
    ADDRESS = "address"
    DIVIDER = "divider"


class ReportElement(BaseModel):
    """One text, address or divider element of a section body."""

    model_config = ConfigDict(frozen=True)

    kind: ElementKind
    value: Optional[str] = None

    @classmethod
    def text(cls, value: str) -> "ReportElement":
        return cls(kind=ElementKind.TEXT, value=value)

    @classmethod
    def address(cls, value: str) -> "ReportElement":
        return cls(kind=ElementKind.ADDRESS, value=value)

    @classmethod
    def divider(cls) -> "ReportElement":
        return cls(kind=ElementKind.DIVIDER)


class ReportSection(BaseModel):
    """A titled group of elements."""

    model_config = ConfigDict(frozen=True)

    kind: SectionKind
    title: Optional[str] = None
    body: Tuple[ReportElement, ...] = ()

    def texts(self) -> List[str]:
        """Values of text and address elements, in order."""
        return [e.value for e in self.body if e.value is not None]


class RiskReport(BaseModel):
    """Ordered, immutable result of one transaction review."""

    model_config = ConfigDict(frozen=True)

    sections: Tuple[ReportSection, ...] = ()
    chain_id: Optional[str] = None
    account_kind: Optional[AccountKind] = None
    unavailable_sources: Tuple[str, ...] = Field(
        default=(), description="Risk sources that failed during this review"
    )

    @property
    def is_complete(self) -> bool:
        return not self.unavailable_sources

    def kinds(self) -> List[SectionKind]:
        return [s.kind for s in self.sections]

    def section(self, kind: SectionKind) -> Optional[ReportSection]:
        for s in self.sections:
            if s.kind == kind:
                return s
        return None


class ReportOrderError(RuntimeError):
    """Raised when a builder would produce a report violating section rules."""


def check_section_order(kinds: List[SectionKind]) -> None:
    """Raise ReportOrderError unless kinds follow SECTION_ORDER."""
    unknown = [kind for kind in kinds if kind not in SECTION_ORDER]
    if unknown:
        raise ReportOrderError(f"unknown section kinds: {unknown}")
    if kinds != sorted(kinds, key=SECTION_ORDER.index):
        raise ReportOrderError(f"sections out of order: {[kind.value for kind in kinds]}")


class ReportBuilder:
    """
    Collects sections by kind and emits them in SECTION_ORDER.

    Each kind except poisoning warnings may be set once. A chain error
    report holds nothing but the error section.
    """

    def __init__(self) -> None:
        self._sections: Dict[SectionKind, List[ReportSection]] = {}
        self._unavailable: List[str] = []
        self._chain_id: Optional[str] = None
        self._account_kind: Optional[AccountKind] = None

    def _put(self, section: ReportSection) -> "ReportBuilder":
        existing = self._sections.setdefault(section.kind, [])
        if existing and section.kind not in REPEATABLE_KINDS:
            raise ReportOrderError(f"section {section.kind.value} already set")
        existing.append(section)
        return self

    def for_chain(self, chain_id: Optional[str], account_kind: Optional[AccountKind] = None) -> "ReportBuilder":
        self._chain_id = chain_id
        self._account_kind = account_kind
        return self

    def chain_error(self, chain_id: object) -> "ReportBuilder":
        return self._put(ReportSection(
            kind=SectionKind.CHAIN_ERROR,
            title="Security Insights",
            body=(ReportElement.text(f"Error: ChainId could not be retrieved ({chain_id})"),),
        ))

    def poisoning_warning(self, finding: PoisoningFinding) -> "ReportBuilder":
        return self._put(ReportSection(
            kind=SectionKind.POISONING_WARNING,
            title="Address Poisoning Warning",
            body=(
                ReportElement.text(f"**{finding.warning}**"),
                ReportElement.text("Suspicious address"),
                ReportElement.address(finding.suspect_address),
                ReportElement.text("Your account"),
                ReportElement.address(finding.resembles),
                ReportElement.divider(),
            ),
        ))

    def source_unavailable(self, source: str) -> "ReportBuilder":
        if source not in self._unavailable:
            self._unavailable.append(source)
        return self

    def screening(self, verdict: RiskVerdict, condense_unknown: bool = False) -> "ReportBuilder":
        """
        Add the headline verdict.

        With condense_unknown, an "Unknown Risk" verdict shows only the
        Overall Risk line. Transfers to an EOA use this; contract calls
        always show the overview and details.
        """
        body = [ReportElement.text(f"**Overall Risk:** {verdict.title}")]
        if not (condense_unknown and verdict.title == UNKNOWN_RISK_TITLE):
            body.append(ReportElement.text(f"**Risk Overview:** {verdict.detail}"))
            body.append(ReportElement.text(f"**Risk Details:** {verdict.transaction_detail}"))
        body.append(ReportElement.divider())
        return self._put(ReportSection(
            kind=SectionKind.SCREENING,
            title="Transaction Screening",
            body=tuple(body),
        ))

    def url_risk(self, origin: str, verdict: RiskVerdict) -> "ReportBuilder":
        body = []
        if verdict.severity.is_notable:
            body.append(ReportElement.text(f"**{verdict.title}**"))
        body.append(ReportElement.text(f"The URL **{origin}** has a risk of **{verdict.score}**"))
        body.append(ReportElement.divider())
        return self._put(ReportSection(
            kind=SectionKind.URL_RISK,
            title="URL Risk Information",
            body=tuple(body),
        ))

    def transfer_details(self, transaction: Transaction, amount: str, symbol: str) -> "ReportBuilder":
        recipient = (
            ReportElement.address(transaction.to)
            if transaction.to is not None
            else ReportElement.text("Contract creation")
        )
        return self._put(ReportSection(
            kind=SectionKind.TRANSFER_DETAILS,
            title="Transfer Details",
            body=(
                ReportElement.text("Your Address"),
                ReportElement.address(transaction.from_address),
                ReportElement.text("Amount"),
                ReportElement.text(f"{amount} {symbol}"),
                ReportElement.text("To"),
                recipient,
                ReportElement.divider(),
            ),
        ))

    def function_call(self, verdict: RiskVerdict) -> "ReportBuilder":
        body: List[ReportElement] = []
        for param in verdict.function_params:
            body.extend((
                ReportElement.text("Name:"),
                ReportElement.text(param.name),
                ReportElement.text("Type:"),
                ReportElement.text(param.type),
                ReportElement.text("Value:"),
            ))
            if param.is_address:
                body.append(ReportElement.address(param.display_value))
            else:
                body.append(ReportElement.text(param.display_value))
            body.append(ReportElement.divider())
        return self._put(ReportSection(
            kind=SectionKind.FUNCTION_CALL,
            title=f"Function Name: {verdict.function_name}",
            body=tuple(body),
        ))

    def unsupported_chain(self, supported_names: Tuple[str, ...]) -> "ReportBuilder":
        names = " and ".join(f"**{name}**" for name in supported_names)
        return self._put(ReportSection(
            kind=SectionKind.UNSUPPORTED_CHAIN,
            body=(
                ReportElement.text(
                    "Security Insights is not fully supported on this chain. "
                    "Only URL screening has been performed."
                ),
                ReportElement.text(f"Currently we only support the {names}."),
            ),
        ))

    def _incomplete_section(self) -> ReportSection:
        body = [ReportElement.text(
            "**Some risk sources could not be reached. This report is incomplete "
            "and missing results must not be read as safe.**"
        )]
        for source in self._unavailable:
            body.append(ReportElement.text(f"{SOURCE_LABELS.get(source, source)} unavailable"))
        body.append(ReportElement.divider())
        return ReportSection(
            kind=SectionKind.SCREENING_INCOMPLETE,
            title="Screening Incomplete",
            body=tuple(body),
        )

    def build(self) -> RiskReport:
        error = self._sections.get(SectionKind.CHAIN_ERROR)
        if error:
            if len(self._sections) > 1 or self._unavailable:
                raise ReportOrderError("chain error report must contain only the error section")
            return RiskReport(sections=tuple(error), chain_id=self._chain_id)

        if self._unavailable and SectionKind.SCREENING_INCOMPLETE not in self._sections:
            self._sections[SectionKind.SCREENING_INCOMPLETE] = [self._incomplete_section()]

        ordered: List[ReportSection] = []
        for kind in SECTION_ORDER:
            ordered.extend(self._sections.get(kind, ()))

        report = RiskReport(
            sections=tuple(ordered),
            chain_id=self._chain_id,
            account_kind=self._account_kind,
            unavailable_sources=tuple(self._unavailable),
        )
        check_section_order(report.kinds())
        return report
