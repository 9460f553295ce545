"""Canonical receipt record schema.

These models are the single source of truth for what an extraction may
return. The wire format (clipboard JSON, model output) uses the camelCase
aliases; Python code uses the snake_case attribute names.

Every optional leaf defaults to ``None``, the canonical "absent" marker, so
presentation code can tell "not detected" apart from "detected as blank".
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RECORD_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    allow_inf_nan=False,
)


def _hint(text: str) -> dict[str, str]:
    return {"hint": text}


class LineItem(BaseModel):
    """A printed line of the document, in print order."""

    model_config = RECORD_MODEL_CONFIG

    description: str = Field(description="Description of the item or service")
    quantity: float = Field(ge=0, description="Quantity as printed")
    unit_price: float = Field(
        description="Unit price exactly as printed",
        json_schema_extra=_hint("Never calculate it from the total"),
    )
    total_price: float = Field(
        description="Line total exactly as printed",
        json_schema_extra=_hint(
            "On medical documents use the gross 'Total Amount', not the patient share"
        ),
    )


class BankDetails(BaseModel):
    """Payment and wire transfer details, usually found in the footer."""

    model_config = RECORD_MODEL_CONFIG

    bank_name: str | None = Field(default=None, description="Name of the bank")
    location: str | None = Field(
        default=None,
        description="Bank branch or location",
        json_schema_extra=_hint("e.g. 'KUSADASI-AYDIN'"),
    )
    account_name: str | None = Field(default=None, description="Beneficiary / account holder")
    account_number: str | None = Field(default=None, description="Account number")
    iban: str | None = Field(default=None, description="IBAN")
    swift: str | None = Field(default=None, description="SWIFT / BIC code")

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class MedicalDetails(BaseModel):
    """Medical report fields found on hospital and clinic invoices."""

    model_config = RECORD_MODEL_CONFIG

    our_ref_no: str | None = Field(default=None, description="Issuer reference number")
    your_ref_no: str | None = Field(default=None, description="Recipient reference number")
    hotel: str | None = Field(default=None, description="Hotel the patient stays at")
    room_no: str | None = Field(default=None, description="Hotel room number")
    patient_phone: str | None = Field(default=None, description="Patient phone number")
    insurance: str | None = Field(default=None, description="Insurance company")
    policy_number: str | None = Field(default=None, description="Insurance policy number")
    admission_date: str | None = Field(default=None, description="Admission date and hour")
    discharge_date: str | None = Field(default=None, description="Discharge date and hour")
    travel_dates: str | None = Field(default=None, description="Travel period of the patient")
    diagnosis: str | None = Field(default=None, description="Diagnosis")
    complaint: str | None = Field(default=None, description="Presenting complaint")
    history: str | None = Field(default=None, description="Medical history")
    physical_examination: str | None = Field(default=None, description="Physical examination findings")
    treatment: str | None = Field(default=None, description="Treatment given")
    prognosis: str | None = Field(default=None, description="Prognosis")

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class ReceiptRecord(BaseModel):
    """Structured record of a photographed or scanned receipt or invoice.

    Use this schema for receipts, invoices and medical bills. Monetary
    values are in the document currency; ``discount`` and ``tip`` are
    non-negative magnitudes.
    """

    model_config = RECORD_MODEL_CONFIG

    # Merchant / provider
    merchant_name: str = Field(min_length=1, description="Name of the merchant or provider")
    merchant_address: str | None = Field(default=None, description="Merchant address")
    merchant_phone: str | None = Field(default=None, description="Merchant phone number")

    # Transaction
    date: str = Field(description="Document date in YYYY-MM-DD format")
    time: str | None = Field(default=None, description="Transaction time")
    invoice_number: str | None = Field(default=None, description="Invoice or receipt number")

    # Client / customer
    client_name: str | None = Field(
        default=None,
        description="Guest or patient name",
        json_schema_extra=_hint("Look for 'Guest Name', 'Patient Name'"),
    )
    client_passport: str | None = Field(
        default=None,
        description="Passport or ID number",
        json_schema_extra=_hint("Look for 'Passport No', 'ID Number'"),
    )
    client_country: str | None = Field(
        default=None,
        description="Nationality or home country",
        json_schema_extra=_hint("Look for 'Nationality'"),
    )
    client_birth_date: str | None = Field(
        default=None,
        description="Client date of birth",
        json_schema_extra=_hint("Look for 'DOB', 'Birth Date', 'Born', or dates near the patient name"),
    )
    service_date: str | None = Field(
        default=None,
        description="Service or admission date",
        json_schema_extra=_hint("Look for 'Service Date', 'Admission Date'"),
    )

    # Financials
    items: list[LineItem] = Field(default_factory=list, description="Line items in print order")
    subtotal: float = Field(description="Subtotal before tax")
    tax: float = Field(description="Tax amount")
    discount: float | None = Field(
        default=None,
        ge=0,
        description="Total of discounts, reductions and insurance adjustments as an absolute value",
    )
    tip: float | None = Field(default=None, ge=0, description="Tip amount")
    total: float = Field(description="Total amount due")
    currency: str = Field(pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code")

    # Nested details, always materialized
    bank_details: BankDetails = Field(
        default_factory=BankDetails,
        description="Bank / payment details",
    )
    medical_details: MedicalDetails = Field(
        default_factory=MedicalDetails,
        description="Medical report details",
    )

    # Meta
    category: str = Field(min_length=1, description="Expense category")
    confidence: float = Field(ge=0.0, le=1.0, description="Extraction confidence (0-1)")
    summary: str | None = Field(default=None, description="One sentence summary of the document")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Require an ISO calendar date."""
        datetime.date.fromisoformat(v)
        if len(v) != 10:
            raise ValueError(f"Expected YYYY-MM-DD, got {v!r}")
        return v

    def needs_review(self, threshold: float = 0.8) -> bool:
        """Whether the confidence is too low to treat the record as verified."""
        return self.confidence <= threshold

    def arithmetic_gap(self) -> float:
        """Difference between the printed total and the recomputed one.

        Advisory only; records are never rejected on this basis.
        """
        expected = self.subtotal + self.tax - (self.discount or 0.0) + (self.tip or 0.0)
        return round(self.total - expected, 2)
