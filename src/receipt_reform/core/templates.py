"""Extraction templates.

A template bundles the instructions sent to the document-understanding
model (system prompt and per-field hints) so they can be versioned and
tuned from a YAML or JSON file without touching code.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from receipt_reform.core.exceptions import ConfigurationError
from receipt_reform.schemas.fields import field_specs

logger = logging.getLogger(__name__)

EXTRACTION_POLICY = """\
You are an expert document digitization AI. Extract data from this receipt/invoice with high precision.

CRITICAL EXTRACTION RULES:

1. **LINE ITEMS (No Math Assumptions)**:
   - Extract 'unitPrice' and 'totalPrice' EXACTLY as printed on the paper.
   - **Do not calculate** one from the other. If the paper says Unit 150 and Total 300, extract Unit 150 and Total 300.
   - **Medical Receipts**: Be very careful. If there is "Patient Share" and "Total Amount", the 'totalPrice' of the item is the "Total Amount" (Gross Charge). Do not put the patient share as the item price.
   - If Quantity is missing, infer it (e.g., Total/Unit), but prioritize the printed numbers for prices.

2. **DISCOUNTS & DEDUCTIONS**:
   - Scan specifically for "Discount", "Reduction", "Insurance Adjustment", "Co-Pay", or "Rebate".
   - These often appear in the summary section or as negative line items.
   - Extract the absolute value into the root 'discount' field.

3. **CLIENT DETAILS**:
   - Look for "Guest Name", "Patient Name", "Passport No", "ID Number", "Nationality", "Service Date", "Admission Date".
   - **Date of Birth**: Look for "DOB", "Birth Date", "Born", or dates near the patient name.
   - This is crucial for professional invoices.

4. **PAYMENT / BANK DETAILS**:
   - Look for "Bank Name", "Location", "Branch", "IBAN", "SWIFT", "BIC", "Account No", "Beneficiary", "Wire Transfer Info".
   - Extract specific "Location" or address fields for the bank (e.g., "KUSADASI-AYDIN").
   - These are often found at the bottom of invoices. Extract them into the 'bankDetails' object.

Output strictly valid JSON matching the schema.
- Currency: ISO 4217 code.
- Date: YYYY-MM-DD."""


def known_field_names() -> set[str]:
    """Wire names a hint may target, nested ones as ``parent.child``."""
    names: set[str] = set()
    for spec in field_specs():
        names.add(spec.alias)
        for child in spec.children:
            names.add(f"{spec.alias}.{child.alias}")
    return names


class ExtractionTemplate(BaseModel):
    """Instructions for one kind of document.

    Example:
        ```python
        template = receipt_template()
        template.to_yaml("templates/receipt.yaml")

        tuned = ExtractionTemplate.from_yaml("templates/receipt.yaml")
        extractor = ReceiptExtractor(template=tuned)
        ```
    """

    name: str = Field(description="Template name for identification")
    version: str = Field(default="1.0", description="Template version")
    system_prompt: str = Field(
        default=EXTRACTION_POLICY,
        description="Extraction policy sent as the system prompt",
    )
    field_hints: dict[str, str] = Field(
        default_factory=dict,
        description="Extra hints keyed by wire field name",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate template name is non-empty."""
        if not v or not v.strip():
            raise ValueError("Template name cannot be empty")
        return v.strip().lower().replace(" ", "_")

    def validate_template(self) -> list[str]:
        """Check the hints against the schema.

        Returns:
            List of warnings (empty if valid).

        Raises:
            ConfigurationError: If the template has no system prompt.
        """
        if not self.system_prompt.strip():
            raise ConfigurationError(f"Template '{self.name}' has an empty system prompt")

        known = known_field_names()
        return [
            f"Field hint '{field_name}' does not match any schema field"
            for field_name in self.field_hints
            if field_name not in known
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "system_prompt": self.system_prompt,
            "field_hints": dict(self.field_hints),
        }

    def to_json(self, path: str | Path | None = None, indent: int = 2) -> str:
        """Serialize template to JSON, optionally writing it to ``path``."""
        json_str = json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
        if path:
            Path(path).write_text(json_str, encoding="utf-8")
        return json_str

    def to_yaml(self, path: str | Path | None = None) -> str:
        """Serialize template to YAML, optionally writing it to ``path``."""
        yaml_str: str = yaml.dump(
            self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True
        )
        if path:
            Path(path).write_text(yaml_str, encoding="utf-8")
        return yaml_str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractionTemplate:
        template = cls(
            name=data.get("name", "unnamed"),
            version=str(data.get("version", "1.0")),
            system_prompt=data.get("system_prompt") or EXTRACTION_POLICY,
            field_hints=data.get("field_hints") or {},
        )
        for warning in template.validate_template():
            logger.warning("Template '%s': %s", template.name, warning)
        return template

    @classmethod
    def from_json(cls, source: str | Path) -> ExtractionTemplate:
        """Load template from a JSON file or string."""
        return cls.from_dict(json.loads(_read_source(source)))

    @classmethod
    def from_yaml(cls, source: str | Path) -> ExtractionTemplate:
        """Load template from a YAML file or string."""
        data = yaml.safe_load(_read_source(source))
        if not isinstance(data, dict):
            raise ConfigurationError("Template YAML must be a mapping")
        return cls.from_dict(data)


def _read_source(source: str | Path) -> str:
    if isinstance(source, Path) or os.path.isfile(source):
        return Path(source).read_text(encoding="utf-8")
    return source


def receipt_template() -> ExtractionTemplate:
    """Default template for receipts, invoices and medical bills."""
    return ExtractionTemplate(
        name="receipt",
        field_hints={
            "invoiceNumber": "Look for 'Invoice #', 'Invoice No.', 'Receipt No.' or similar",
            "date": "The document date, not the service or due date",
            "discount": "Absolute value of all discounts and insurance adjustments combined",
            "bankDetails.iban": "International Bank Account Number, often in the footer",
            "bankDetails.swift": "SWIFT or BIC code",
            "category": "Short expense category, e.g. 'Medical', 'Dining', 'Lodging'",
            "confidence": "Your confidence in the extraction from 0.0 to 1.0",
        },
    )
