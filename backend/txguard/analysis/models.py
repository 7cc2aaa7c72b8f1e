"""Domain models shared by the risk aggregation engine.
Kept in one module to avoid circular imports between gateway, detector and aggregator.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccountKind(str, Enum):
    """Classification of a transaction destination."""
    EXTERNALLY_OWNED = "externally_owned"
    CONTRACT = "contract"


class Severity(IntEnum):
    """
    Ordinal severity scale for provider scores.

    Provider scores map one-to-one onto the scale; anything above
    CRITICAL clamps to CRITICAL. NOTABLE is the bold-warning threshold.
    """
    NONE = 0
    LOW = 1
    NOTABLE = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_score(cls, score: int) -> "Severity":
        if score <= cls.NONE:
            return cls.NONE
        if score >= cls.CRITICAL:
            return cls.CRITICAL
        return cls(score)

    @property
    def is_notable(self) -> bool:
        return self >= Severity.NOTABLE


class RiskQueryKind(str, Enum):
    """Named risk queries understood by the risk data provider."""
    URL_RISK = "url_risk"
    ADDRESS_LABEL_RISK = "address_label_risk"
    CONTRACT_INTERACTION_RISK = "contract_interaction_risk"
    GENERIC_TRANSACTION_RISK = "generic_transaction_risk"

    @property
    def requires_transaction(self) -> bool:
        return self is not RiskQueryKind.URL_RISK


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC quantity (hex string, decimal string or int) into an int."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("value must be an integer quantity")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            quantity = int(text, 16) if len(text) > 2 else 0
        else:
            quantity = int(text, 10)
    else:
        raise ValueError(f"unsupported quantity type: {type(value).__name__}")
    if quantity < 0:
        raise ValueError("value must not be negative")
    return quantity


class Transaction(BaseModel):
    """Pending transaction submitted for review. Immutable."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_address: str = Field(..., alias="from", description="Sender address")
    to: Optional[str] = Field(default=None, description="Destination; absent for contract creation")
    value: int = Field(default=0, description="Native value in base units")
    data: Optional[str] = Field(default=None, description="Opaque call payload")

    @field_validator("value", mode="before")
    @classmethod
    def normalize_value(cls, v: Any) -> int:
        return parse_quantity(v)

    @field_validator("to", mode="before")
    @classmethod
    def empty_to_is_creation(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None

    def to_rpc_dict(self) -> dict:
        """Wire form with the wallet's field names and hex value."""
        return {
            "from": self.from_address,
            "to": self.to,
            "value": hex(self.value),
            "data": self.data or "0x",
        }


class FunctionParam(BaseModel):
    """One decoded function argument."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    type: str
    value: Any = None

    @property
    def is_address(self) -> bool:
        return self.type == "address"

    @property
    def display_value(self) -> str:
        if self.value is None:
            return ""
        return str(self.value)


class RiskVerdict(BaseModel):
    """Normalized result of one risk source query."""

    model_config = ConfigDict(frozen=True)

    kind: RiskQueryKind
    score: int = Field(..., ge=0, description="Ordinal severity, higher is worse")
    title: str = ""
    detail: str = ""
    transaction_detail: str = ""
    function_name: str = ""
    function_params: List[FunctionParam] = Field(default_factory=list)

    @property
    def severity(self) -> Severity:
        return Severity.from_score(self.score)

    @property
    def has_decoded_function(self) -> bool:
        return bool(self.function_name)

    def address_params(self) -> List[str]:
        """Values of address-typed parameters, in declaration order."""
        return [
            p.value for p in self.function_params
            if p.is_address and isinstance(p.value, str) and p.value
        ]


@dataclass(frozen=True)
class PoisoningFinding:
    """A candidate address that imitates one of the user's accounts."""
    suspect_address: str
    resembles: str
    warning: str
