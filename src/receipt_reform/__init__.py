"""
receipt-reform: turns photographed or scanned receipts into structured,
editable records and re-renders them as print-ready documents.
"""

from seeds_clients.core.base_client import BaseClient

from receipt_reform.core.config import ExportConfig, ExtractionConfig
from receipt_reform.core.exceptions import (
    ConfigurationError,
    ExportError,
    ExtractionError,
    ExtractionValidationError,
    InputValidationError,
    InvalidDateError,
    LLMError,
    NormalizationError,
    ReceiptReformError,
    RecordNotReadyError,
    ServiceError,
    SnapshotNotFoundError,
    SurfaceBlockedError,
    TransportError,
)
from receipt_reform.core.extractor import ReceiptExtractor
from receipt_reform.core.intake import UploadedDocument, load_document, validate_upload
from receipt_reform.core.templates import EXTRACTION_POLICY, ExtractionTemplate, receipt_template
from receipt_reform.export import (
    BrowserSurface,
    PrintDocument,
    PrintExporter,
    PrintRenderer,
    ViewNode,
    build_receipt_view,
    format_currency,
)
from receipt_reform.prompts.builder import PromptBuilder
from receipt_reform.results import ExtractionResult, normalize
from receipt_reform.schemas import (
    BankDetails,
    FieldKind,
    FieldSpec,
    LineItem,
    MedicalDetails,
    ReceiptRecord,
    build_candidate_model,
    field_specs,
    required_fields,
)
from receipt_reform.session import ReceiptSession, RecordStore, SessionState

__version__ = "0.1.0"

__all__ = [
    # Core
    "ReceiptExtractor",
    "BaseClient",  # For type hints when injecting clients
    "ExtractionTemplate",
    "EXTRACTION_POLICY",
    "receipt_template",
    "PromptBuilder",
    # Intake
    "UploadedDocument",
    "load_document",
    "validate_upload",
    # Config
    "ExtractionConfig",
    "ExportConfig",
    # Errors
    "ReceiptReformError",
    "InputValidationError",
    "InvalidDateError",
    "ConfigurationError",
    "ExtractionError",
    "ExtractionValidationError",
    "LLMError",
    "TransportError",
    "ServiceError",
    "NormalizationError",
    "ExportError",
    "SnapshotNotFoundError",
    "SurfaceBlockedError",
    "RecordNotReadyError",
    # Schema
    "ReceiptRecord",
    "LineItem",
    "BankDetails",
    "MedicalDetails",
    "FieldKind",
    "FieldSpec",
    "field_specs",
    "required_fields",
    "build_candidate_model",
    # Results
    "ExtractionResult",
    "normalize",
    # Session
    "ReceiptSession",
    "RecordStore",
    "SessionState",
    # Export
    "ViewNode",
    "build_receipt_view",
    "format_currency",
    "PrintRenderer",
    "PrintDocument",
    "PrintExporter",
    "BrowserSurface",
]
