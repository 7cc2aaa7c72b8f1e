"""
Tests for report assembly: section content and fixed ordering.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from txguard.analysis.models import (
    FunctionParam,
    PoisoningFinding,
    RiskQueryKind,
    RiskVerdict,
    Transaction,
)
from txguard.analysis.report import (
    ElementKind,
    ReportBuilder,
    ReportOrderError,
    SectionKind,
    check_section_order,
)

from conftest import KNOWN_ACCOUNT, LOOKALIKE, RECIPIENT


def _finding() -> PoisoningFinding:
    return PoisoningFinding(suspect_address=LOOKALIKE, resembles=KNOWN_ACCOUNT, warning="looks similar")


def _verdict(kind=RiskQueryKind.ADDRESS_LABEL_RISK, score=1, title="Low Risk", **kwargs) -> RiskVerdict:
    return RiskVerdict(
        kind=kind,
        score=score,
        title=title,
        detail="overview",
        transaction_detail="details",
        **kwargs,
    )


class TestReportOrdering:
    """Sections come out in fixed order whatever order they were added in."""

    def test_reverse_insertion_is_reordered(self):
        tx = Transaction(from_address=KNOWN_ACCOUNT, to=RECIPIENT, value=1)
        builder = ReportBuilder()
        builder.unsupported_chain(("BSC Mainnet",))
        builder.transfer_details(tx, "1", "ETH")
        builder.url_risk("https://example.org", _verdict(RiskQueryKind.URL_RISK))
        builder.screening(_verdict())
        builder.source_unavailable(RiskQueryKind.URL_RISK.value)
        builder.poisoning_warning(_finding())

        report = builder.build()

        assert report.kinds() == [
            SectionKind.POISONING_WARNING,
            SectionKind.SCREENING_INCOMPLETE,
            SectionKind.SCREENING,
            SectionKind.URL_RISK,
            SectionKind.TRANSFER_DETAILS,
            SectionKind.UNSUPPORTED_CHAIN,
        ]

    def test_multiple_poisoning_warnings_allowed(self):
        builder = ReportBuilder()
        builder.poisoning_warning(_finding())
        builder.poisoning_warning(_finding())
        assert builder.build().kinds() == [SectionKind.POISONING_WARNING] * 2

    def test_duplicate_section_rejected(self):
        builder = ReportBuilder().screening(_verdict())
        with pytest.raises(ReportOrderError):
            builder.screening(_verdict())

    def test_chain_error_must_be_alone(self):
        builder = ReportBuilder().chain_error(None).screening(_verdict())
        with pytest.raises(ReportOrderError):
            builder.build()

    def test_chain_error_report(self):
        report = ReportBuilder().chain_error(None).build()
        assert report.kinds() == [SectionKind.CHAIN_ERROR]
        assert report.sections[0].texts() == ["Error: ChainId could not be retrieved (None)"]

    def test_order_check_rejects_misordered_kinds(self):
        check_section_order([SectionKind.POISONING_WARNING, SectionKind.SCREENING])
        with pytest.raises(ReportOrderError):
            check_section_order([SectionKind.SCREENING, SectionKind.POISONING_WARNING])


class TestSectionContent:
    """Test suite for individual section renderers."""

    def test_screening_lines(self):
        section = ReportBuilder().screening(_verdict(title="High Risk")).build().sections[0]
        assert section.title == "Transaction Screening"
        assert section.texts() == [
            "**Overall Risk:** High Risk",
            "**Risk Overview:** overview",
            "**Risk Details:** details",
        ]
        assert section.body[-1].kind is ElementKind.DIVIDER

    def test_condensed_unknown_risk_shows_only_overall_line(self):
        builder = ReportBuilder().screening(_verdict(title="Unknown Risk"), condense_unknown=True)
        section = builder.build().sections[0]
        assert section.texts() == ["**Overall Risk:** Unknown Risk"]

    def test_unknown_risk_keeps_details_by_default(self):
        section = ReportBuilder().screening(_verdict(title="Unknown Risk")).build().sections[0]
        assert section.texts() == [
            "**Overall Risk:** Unknown Risk",
            "**Risk Overview:** overview",
            "**Risk Details:** details",
        ]

    def test_url_risk_bold_title_when_notable(self):
        verdict = _verdict(RiskQueryKind.URL_RISK, score=3, title="Phishing Site")
        section = ReportBuilder().url_risk("https://evil.example", verdict).build().sections[0]
        assert section.texts() == [
            "**Phishing Site**",
            "The URL **https://evil.example** has a risk of **3**",
        ]

    def test_url_risk_no_title_when_low(self):
        verdict = _verdict(RiskQueryKind.URL_RISK, score=1, title="Low Risk")
        section = ReportBuilder().url_risk("https://ok.example", verdict).build().sections[0]
        assert section.texts() == ["The URL **https://ok.example** has a risk of **1**"]

    def test_transfer_details(self):
        tx = Transaction(from_address=KNOWN_ACCOUNT, to=RECIPIENT, value=10 ** 16)
        section = ReportBuilder().transfer_details(tx, "0.01", "ETH").build().sections[0]
        assert section.texts() == ["Your Address", KNOWN_ACCOUNT, "Amount", "0.01 ETH", "To", RECIPIENT]
        assert section.body[1].kind is ElementKind.ADDRESS
        assert section.body[5].kind is ElementKind.ADDRESS

    def test_transfer_details_contract_creation(self):
        tx = Transaction(from_address=KNOWN_ACCOUNT, to=None, value=5)
        section = ReportBuilder().transfer_details(tx, "0", "BNB").build().sections[0]
        assert section.texts()[-1] == "Contract creation"

    def test_function_call_listing(self):
        verdict = _verdict(
            RiskQueryKind.GENERIC_TRANSACTION_RISK,
            function_name="transfer",
            function_params=[
                FunctionParam(name="to", type="address", value=RECIPIENT),
                FunctionParam(name="amount", type="uint256", value=1000),
            ],
        )
        section = ReportBuilder().function_call(verdict).build().sections[0]

        assert section.title == "Function Name: transfer"
        assert section.texts() == [
            "Name:", "to", "Type:", "address", "Value:", RECIPIENT,
            "Name:", "amount", "Type:", "uint256", "Value:", "1000",
        ]
        address_elements = [e for e in section.body if e.kind is ElementKind.ADDRESS]
        assert [e.value for e in address_elements] == [RECIPIENT]

    def test_unsupported_chain_notice(self):
        section = ReportBuilder().unsupported_chain(("BSC Mainnet", "ETH Mainnet")).build().sections[0]
        assert section.title is None
        assert section.texts() == [
            "Security Insights is not fully supported on this chain. "
            "Only URL screening has been performed.",
            "Currently we only support the **BSC Mainnet** and **ETH Mainnet**.",
        ]

    def test_incomplete_section_names_sources(self):
        report = (
            ReportBuilder()
            .source_unavailable("address_label_risk")
            .source_unavailable("address_label_risk")
            .build()
        )
        assert report.unavailable_sources == ("address_label_risk",)
        assert not report.is_complete
        section = report.section(SectionKind.SCREENING_INCOMPLETE)
        assert section is not None
        assert "Address label screening unavailable" in section.texts()
