"""
Receipt Schema: Pydantic models for ledger records and provider output.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RECEIPT_FIELDS = ("date", "amount", "payee", "description")

_AMOUNT_NOISE = ("¥", "￥", "$", "円", ",", "，", " ", "　")


def parse_amount(value: Any) -> Optional[float]:
    """Parse a money value, returning None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        for token in _AMOUNT_NOISE:
            value = value.replace(token, "")
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_amount(value: Any) -> float:
    """Like parse_amount, but anything non-numeric becomes 0."""
    number = parse_amount(value)
    return 0.0 if number is None else number


def format_amount(value: float) -> str:
    """Render whole amounts without a decimal point (1250, not 1250.0)."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class ReceiptRecord(BaseModel):
    """One accepted receipt in the ledger."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "id": "3f2a9c0e5b8d4e1f9a7c6b5d4e3f2a1b",
                "date": "2024/01/25",
                "amount": 1250,
                "payee": "Starbucks",
                "description": "coffee, sandwich",
            }
        },
    )

    id: Optional[str] = Field(None, description="Assigned by the ledger on append")
    date: str = Field("", description="Purchase date, expected YYYY/MM/DD")
    amount: float = Field(0.0, description="Total in whole currency units")
    payee: str = Field("", description="Store or payee name")
    description: str = Field("", description="What was bought / purpose")

    @model_validator(mode="before")
    @classmethod
    def merge_legacy_purpose(cls, data: Any) -> Any:
        """Older ledgers stored the description under 'purpose'."""
        if isinstance(data, dict) and "purpose" in data:
            data = dict(data)
            purpose = data.pop("purpose")
            if not data.get("description"):
                data["description"] = purpose
        return data

    @field_validator("date", "payee", "description", mode="before")
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount_value(cls, v):
        return coerce_amount(v)

    def edited(self, **changes: Any) -> "ReceiptRecord":
        """Return a copy with fields replaced; amount is re-coerced."""
        data = self.model_dump()
        data.update(changes)
        return ReceiptRecord(**data)

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump()


class ExtractedReceipt(BaseModel):
    """
    Fields the model extracted from a receipt image.

    Provider output is untrusted: every field is optional and anything the
    model left out, nulled, or blanked is reported in missing_fields.
    """

    date: Optional[str] = None
    amount: Optional[float] = None
    payee: Optional[str] = None
    description: Optional[str] = None
    missing_fields: List[str] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ExtractedReceipt":
        if not payload.get("description") and payload.get("purpose"):
            payload = {**payload, "description": payload["purpose"]}

        values: Dict[str, Any] = {}
        for name in RECEIPT_FIELDS:
            raw_value = payload.get(name)
            if name == "amount":
                values[name] = parse_amount(raw_value)
            elif raw_value is None:
                values[name] = None
            else:
                text = raw_value if isinstance(raw_value, str) else str(raw_value)
                values[name] = text.strip() or None

        missing = [name for name in RECEIPT_FIELDS if values[name] is None]
        return cls(**values, missing_fields=missing, raw=payload)

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def to_record(self) -> ReceiptRecord:
        """Seed an editable review draft; gaps become blanks / 0."""
        return ReceiptRecord(
            date=self.date or "",
            amount=self.amount if self.amount is not None else 0.0,
            payee=self.payee or "",
            description=self.description or "",
        )


class ModelDescriptor(BaseModel):
    """A provider model usable for extraction."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    description: str = ""

    @field_validator("display_name", "description", mode="before")
    @classmethod
    def none_to_blank(cls, v):
        return "" if v is None else v
