"""Record normalization.

Turns the untrusted candidate returned by the model into a canonical
:class:`~receipt_reform.schemas.receipt.ReceiptRecord`. Missing optional
fields never fail: they become ``None`` and the nested detail objects are
always materialized. Missing or non-numeric required fields raise
:class:`~receipt_reform.core.exceptions.NormalizationError`, since a record
without valid totals cannot be rendered.

Line item prices are copied as extracted. ``unitPrice`` and ``totalPrice``
are never recomputed from one another, even when they disagree.
"""

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from receipt_reform.core.exceptions import NormalizationError
from receipt_reform.schemas.fields import FieldKind, FieldSpec, field_specs
from receipt_reform.schemas.receipt import LineItem, ReceiptRecord

logger = logging.getLogger(__name__)

# Tried in order after ISO 8601. Month-first wins for ambiguous slashed dates.
DATE_FORMATS = (
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%d.%m.%y",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%m/%d/%y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

CURRENCY_SYMBOLS = {
    "$": "USD",
    "US$": "USD",
    "€": "EUR",
    "£": "GBP",
    "₺": "TRY",
    "TL": "TRY",
    "¥": "JPY",
    "₹": "INR",
}

DEDUCTION_KEYWORDS = (
    "discount",
    "reduction",
    "deduction",
    "insurance",
    "co-pay",
    "copay",
    "rebate",
    "promo",
    "coupon",
    "indirim",
    "kurum pay",
)

# Required numbers that fall back to a value instead of failing.
# A missing confidence means "review needed", not "unrenderable".
NUMERIC_DEFAULTS = {"confidence": 0.0}

# Optional dates rewritten to ISO when parseable
OPTIONAL_DATE_FIELDS = ("clientBirthDate", "serviceDate")

_NUMBER_JUNK = re.compile(r"[^\d,.\-]")


def parse_calendar_date(value: Any) -> str | None:
    """Parse a date in any supported format to ``YYYY-MM-DD``.

    Returns None when the value cannot be read as a calendar date.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def coerce_number(value: Any) -> float | None:
    """Coerce a model value to a finite float.

    Accepts numbers and numeric strings such as ``"1,500.00"``, ``"$12"``,
    ``"1.500,00"`` or ``"(15.00)"``. Returns None for anything else.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    negative = text.startswith("(") and text.endswith(")")
    text = _NUMBER_JUNK.sub("", text)
    if not text:
        return None

    if "," in text and "." in text:
        # The right-most separator is the decimal one
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        if re.fullmatch(r"-?\d{1,3}(,\d{3})+", text):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif re.fullmatch(r"-?\d{1,3}(\.\d{3})+", text):
        # Dot-grouped thousands, e.g. "1.500" on TRY or EUR receipts
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return -abs(number) if negative else number


def normalize_currency(value: Any) -> str | None:
    """Map a currency code or symbol to an upper-case ISO 4217 code."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[text]
    code = text.upper()
    if code in CURRENCY_SYMBOLS:
        return CURRENCY_SYMBOLS[code]
    return code if re.fullmatch(r"[A-Z]{3}", code) else None


def derive_invoice_number(iso_date: str) -> str:
    return f"INV-{iso_date.replace('-', '')}"


def is_deduction(description: str) -> bool:
    lowered = description.lower()
    return any(keyword in lowered for keyword in DEDUCTION_KEYWORDS)


def _lookup(candidate: Mapping[str, Any], spec: FieldSpec) -> Any:
    if spec.alias in candidate:
        return candidate[spec.alias]
    return candidate.get(spec.name)


def _text(value: Any) -> str | None:
    """Strings are stripped; blanks become the absent marker."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def _required_number(value: Any, path: str) -> float:
    number = coerce_number(value)
    if number is None:
        raise NormalizationError(
            f"Required numeric field '{path}' is missing or not a finite number",
            field=path,
        )
    return number


def _details(value: Any, spec: FieldSpec) -> dict[str, Any]:
    """Materialize a nested details object with every leaf present."""
    source = value if isinstance(value, Mapping) else {}
    return {child.name: _text(_lookup(source, child)) for child in spec.children}


def _items(value: Any) -> tuple[list[LineItem], list[int]]:
    """Normalize line items.

    Returns the items in print order and the positions of the negative
    deduction lines among them.
    """
    if value is None:
        return [], []
    if not isinstance(value, list):
        raise NormalizationError("Field 'items' must be a list", field="items")

    items: list[LineItem] = []
    deduction_positions: list[int] = []
    for index, raw in enumerate(value):
        path = f"items[{index}]"
        if not isinstance(raw, Mapping):
            raise NormalizationError(f"Line item '{path}' is not an object", field=path)

        description = _text(raw.get("description"))
        if description is None:
            raise NormalizationError(
                f"Required field '{path}.description' is missing", field=f"{path}.description"
            )
        quantity = _required_number(raw.get("quantity"), f"{path}.quantity")
        unit_price = _required_number(
            raw.get("unitPrice", raw.get("unit_price")), f"{path}.unitPrice"
        )
        total_price = _required_number(
            raw.get("totalPrice", raw.get("total_price")), f"{path}.totalPrice"
        )

        if total_price < 0 and is_deduction(description):
            deduction_positions.append(len(items))

        items.append(
            LineItem(
                description=description,
                quantity=abs(quantity),
                unit_price=unit_price,
                total_price=total_price,
            )
        )
    return items, deduction_positions


def _fold_deductions(
    items: list[LineItem], positions: list[int], discount: float | None
) -> tuple[list[LineItem], float | None]:
    """Move deduction lines into the discount.

    An absent or zero discount becomes the sum of the lines. A printed
    discount at least as large as the lines already covers them. A smaller
    one does not, so the lines stay in the items.
    """
    deductions = round(sum(abs(items[i].total_price) for i in positions), 2)
    if discount and discount < deductions:
        logger.warning(
            "Discount %s does not cover deduction lines totalling %s; keeping the lines",
            discount,
            deductions,
        )
        return items, discount

    for i in positions:
        logger.warning(
            "Folding deduction line %r (%s) into discount",
            items[i].description,
            items[i].total_price,
        )
    kept = [item for i, item in enumerate(items) if i not in positions]
    return kept, discount or deductions


def normalize(candidate: Mapping[str, Any] | BaseModel) -> ReceiptRecord:
    """Coerce a candidate into a canonical record.

    Args:
        candidate: Model output keyed by wire (camelCase) or attribute name.

    Returns:
        A fully populated ReceiptRecord.

    Raises:
        NormalizationError: If a required field is missing or not coercible.
    """
    if isinstance(candidate, BaseModel):
        candidate = candidate.model_dump(by_alias=True)
    if not isinstance(candidate, Mapping):
        raise NormalizationError("Extraction output is not an object")

    values: dict[str, Any] = {}
    deduction_positions: list[int] = []

    for spec in field_specs(ReceiptRecord):
        raw = _lookup(candidate, spec)

        if spec.kind is FieldKind.ARRAY:
            values[spec.name], deduction_positions = _items(raw)
        elif spec.kind is FieldKind.OBJECT:
            values[spec.name] = _details(raw, spec)
        elif spec.kind is FieldKind.NUMBER:
            if spec.alias in NUMERIC_DEFAULTS:
                number = coerce_number(raw)
                values[spec.name] = NUMERIC_DEFAULTS[spec.alias] if number is None else number
            elif spec.required:
                values[spec.name] = _required_number(raw, spec.alias)
            else:
                values[spec.name] = coerce_number(raw)
        else:
            text = _text(raw)
            if spec.required and text is None:
                raise NormalizationError(
                    f"Required field '{spec.alias}' is missing", field=spec.alias
                )
            values[spec.name] = text

    iso_date = parse_calendar_date(values["date"])
    if iso_date is None:
        raise NormalizationError(
            f"Field 'date' is not a calendar date: {values['date']!r}", field="date"
        )
    values["date"] = iso_date

    for alias in OPTIONAL_DATE_FIELDS:
        name = next(spec.name for spec in field_specs(ReceiptRecord) if spec.alias == alias)
        if values[name] is not None:
            values[name] = parse_calendar_date(values[name]) or values[name]

    currency = normalize_currency(values["currency"])
    if currency is None:
        raise NormalizationError(
            f"Field 'currency' is not an ISO 4217 code: {values['currency']!r}",
            field="currency",
        )
    values["currency"] = currency

    if values["discount"] is not None:
        values["discount"] = abs(values["discount"])
    if deduction_positions:
        values["items"], values["discount"] = _fold_deductions(
            values["items"], deduction_positions, values["discount"]
        )
    if values["tip"] is not None:
        values["tip"] = abs(values["tip"])

    values["confidence"] = min(max(values["confidence"], 0.0), 1.0)

    if values["invoice_number"] is None:
        values["invoice_number"] = derive_invoice_number(iso_date)

    try:
        return ReceiptRecord(**values)
    except ValidationError as e:
        raise NormalizationError(f"Normalized record is invalid: {e}") from e
