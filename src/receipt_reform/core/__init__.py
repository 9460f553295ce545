"""Core extraction functionality."""

from receipt_reform.core.config import ExportConfig, ExtractionConfig
from receipt_reform.core.exceptions import (
    ConfigurationError,
    ExtractionError,
    ExtractionValidationError,
    LLMError,
    ReceiptReformError,
    ServiceError,
    TransportError,
)
from receipt_reform.core.extractor import ReceiptExtractor
from receipt_reform.core.templates import ExtractionTemplate, receipt_template

__all__ = [
    "ReceiptExtractor",
    "ExtractionTemplate",
    "receipt_template",
    "ExtractionConfig",
    "ExportConfig",
    "ReceiptReformError",
    "ExtractionError",
    "ExtractionValidationError",
    "LLMError",
    "TransportError",
    "ServiceError",
    "ConfigurationError",
]
