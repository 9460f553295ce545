"""Tests for the record schema and the field descriptors derived from it."""

import pytest
from pydantic import ValidationError

from receipt_reform import (
    BankDetails,
    FieldKind,
    MedicalDetails,
    ReceiptRecord,
    build_candidate_model,
    field_specs,
    required_fields,
)
from receipt_reform.schemas import optional_fields


def make_record(**overrides: object) -> ReceiptRecord:
    data: dict[str, object] = {
        "merchantName": "Cafe Aurora",
        "date": "2024-03-15",
        "items": [
            {"description": "Espresso", "quantity": 2, "unitPrice": 3.5, "totalPrice": 7.0},
        ],
        "subtotal": 7.0,
        "tax": 0.7,
        "total": 7.7,
        "currency": "EUR",
        "category": "Dining",
        "confidence": 0.95,
    }
    data.update(overrides)
    return ReceiptRecord.model_validate(data)


class TestReceiptRecord:
    """Tests for the ReceiptRecord model."""

    def test_wire_names_round_trip(self) -> None:
        """Test records accept and emit camelCase wire names."""
        record = make_record()

        assert record.merchant_name == "Cafe Aurora"
        assert record.items[0].unit_price == 3.5

        dumped = record.model_dump(by_alias=True)
        assert dumped["merchantName"] == "Cafe Aurora"
        assert dumped["items"][0]["totalPrice"] == 7.0
        assert "bankDetails" in dumped
        assert "medicalDetails" in dumped

    def test_nested_details_always_materialized(self) -> None:
        """Test absent details become objects with every leaf set to None."""
        record = make_record()

        assert isinstance(record.bank_details, BankDetails)
        assert isinstance(record.medical_details, MedicalDetails)
        assert record.bank_details.is_empty()
        assert record.medical_details.is_empty()
        assert record.model_dump()["medical_details"]["diagnosis"] is None

    def test_rejects_non_iso_date(self) -> None:
        """Test the date must be YYYY-MM-DD."""
        with pytest.raises(ValidationError):
            make_record(date="15/03/2024")

        with pytest.raises(ValidationError):
            make_record(date="2024-02-30")

    def test_rejects_lowercase_currency(self) -> None:
        """Test the currency must be an upper-case three letter code."""
        with pytest.raises(ValidationError):
            make_record(currency="eur")

    def test_rejects_negative_discount(self) -> None:
        """Test discounts are stored as magnitudes."""
        with pytest.raises(ValidationError):
            make_record(discount=-5.0)

    def test_rejects_non_finite_amounts(self) -> None:
        """Test NaN and infinity are not valid amounts."""
        with pytest.raises(ValidationError):
            make_record(total=float("nan"))

    def test_needs_review(self) -> None:
        """Test the review flag uses an inclusive threshold."""
        assert make_record(confidence=0.8).needs_review() is True
        assert make_record(confidence=0.81).needs_review() is False
        assert make_record(confidence=0.9).needs_review(threshold=0.95) is True

    def test_arithmetic_gap(self) -> None:
        """Test the advisory arithmetic check."""
        assert make_record().arithmetic_gap() == 0.0

        record = make_record(subtotal=100.0, tax=10.0, discount=20.0, tip=5.0, total=100.0)
        assert record.arithmetic_gap() == 5.0


class TestFieldSpecs:
    """Tests for field descriptors."""

    def test_one_spec_per_model_field(self) -> None:
        """Test every model field is described."""
        specs = field_specs(ReceiptRecord)

        assert [spec.name for spec in specs] == list(ReceiptRecord.model_fields)

    def test_kinds_and_aliases(self) -> None:
        """Test kinds and wire names are derived from annotations."""
        specs = {spec.alias: spec for spec in field_specs(ReceiptRecord)}

        assert specs["merchantName"].kind is FieldKind.STRING
        assert specs["total"].kind is FieldKind.NUMBER
        assert specs["items"].kind is FieldKind.ARRAY
        assert specs["bankDetails"].kind is FieldKind.OBJECT
        assert specs["discount"].nullable is True
        assert specs["total"].nullable is False

    def test_nested_children(self) -> None:
        """Test nested models expose their leaves."""
        specs = {spec.alias: spec for spec in field_specs(ReceiptRecord)}

        item_children = [child.alias for child in specs["items"].children]
        assert item_children == ["description", "quantity", "unitPrice", "totalPrice"]
        assert len(specs["bankDetails"].children) == 6
        assert len(specs["medicalDetails"].children) == 16

    def test_hints_read_from_schema(self) -> None:
        """Test hints declared on fields are carried into the specs."""
        specs = {spec.alias: spec for spec in field_specs(ReceiptRecord)}

        assert specs["clientPassport"].hint is not None
        assert "Passport" in specs["clientPassport"].hint

    def test_required_and_optional_fields(self) -> None:
        """Test the required set is exactly the fields without defaults."""
        required = required_fields(ReceiptRecord)

        assert set(required) == {
            "merchantName",
            "date",
            "subtotal",
            "tax",
            "total",
            "currency",
            "category",
            "confidence",
        }
        assert "clientBirthDate" in optional_fields(ReceiptRecord)
        assert "items" in optional_fields(ReceiptRecord)


class TestCandidateModel:
    """Tests for the lenient structured-output model."""

    def test_accepts_partial_answers(self) -> None:
        """Test a candidate with missing required fields still validates."""
        candidate_model = build_candidate_model(ReceiptRecord)

        candidate = candidate_model.model_validate({"merchantName": "Shop"})

        dumped = candidate.model_dump()
        assert dumped["merchantName"] == "Shop"
        assert dumped["total"] is None

    def test_uses_wire_names(self) -> None:
        """Test candidate fields are keyed by wire name."""
        candidate_model = build_candidate_model(ReceiptRecord)

        assert candidate_model.__name__ == "ReceiptRecordCandidate"
        assert "merchantName" in candidate_model.model_fields
        assert "bankDetails" in candidate_model.model_fields

    def test_nested_items_are_lenient(self) -> None:
        """Test nested line items accept missing values too."""
        candidate_model = build_candidate_model(ReceiptRecord)

        candidate = candidate_model.model_validate({"items": [{"description": "Tea"}]})

        assert candidate.model_dump()["items"][0]["unitPrice"] is None

    def test_is_cached(self) -> None:
        """Test the candidate model is built once per record model."""
        assert build_candidate_model(ReceiptRecord) is build_candidate_model(ReceiptRecord)
