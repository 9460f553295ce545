"""Extraction results and normalization."""

from receipt_reform.results.normalizer import (
    coerce_number,
    normalize,
    normalize_currency,
    parse_calendar_date,
)
from receipt_reform.results.types import ExtractionResult

__all__ = [
    "ExtractionResult",
    "normalize",
    "coerce_number",
    "normalize_currency",
    "parse_calendar_date",
]
