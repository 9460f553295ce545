"""Receipt record schema.

The canonical pydantic models and the field descriptors derived from them.
"""

from receipt_reform.schemas.fields import (
    FieldKind,
    FieldSpec,
    build_candidate_model,
    field_specs,
    optional_fields,
    required_fields,
)
from receipt_reform.schemas.receipt import BankDetails, LineItem, MedicalDetails, ReceiptRecord

__all__ = [
    "ReceiptRecord",
    "LineItem",
    "BankDetails",
    "MedicalDetails",
    "FieldKind",
    "FieldSpec",
    "field_specs",
    "required_fields",
    "optional_fields",
    "build_candidate_model",
]
