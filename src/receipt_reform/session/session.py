"""Single-document workflow: upload, extraction, edits, export.

The session is a small state machine::

    empty --begin--> extracting --resolve--> ready
                          |                    |
                          +------reject---> failed
    (any) --reset--> empty

Every upload increments ``generation``. Results are applied only when they
carry the current generation, so an answer that arrives after a reset (or
after a newer upload) is discarded.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from receipt_reform.core.config import ExportConfig
from receipt_reform.core.exceptions import (
    ConfigurationError,
    NormalizationError,
    ReceiptReformError,
    RecordNotReadyError,
)
from receipt_reform.core.extractor import ReceiptExtractor
from receipt_reform.core.intake import UploadedDocument
from receipt_reform.export.renderer import PrintDocument, PrintExporter
from receipt_reform.export.view import ViewNode, build_receipt_view
from receipt_reform.results.normalizer import normalize
from receipt_reform.schemas.receipt import ReceiptRecord
from receipt_reform.session.store import RecordStore

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong during processing."


class SessionState(str, Enum):
    """Lifecycle state of the live document."""

    EMPTY = "empty"
    EXTRACTING = "extracting"
    READY = "ready"
    FAILED = "failed"


class ReceiptSession:
    """Owns the live record for one user and sequences its phases."""

    def __init__(
        self,
        extractor: ReceiptExtractor | None = None,
        store: RecordStore | None = None,
        export_config: ExportConfig | None = None,
    ) -> None:
        self.extractor = extractor
        self.store = store or RecordStore()
        self.export_config = export_config or ExportConfig()
        self.state = SessionState.EMPTY
        self.generation = 0
        self.error_message: str | None = None
        self.document: UploadedDocument | None = None

    @property
    def record(self) -> ReceiptRecord | None:
        """The displayed record, or None unless the session is ready."""
        if self.state is not SessionState.READY:
            return None
        return self.store.displayed

    def begin(self, document: UploadedDocument | None = None) -> int:
        """Start a new upload and return its generation."""
        self.generation += 1
        self.store.clear()
        self.document = document
        self.error_message = None
        self.state = SessionState.EXTRACTING
        logger.info("Extraction %d started", self.generation)
        return self.generation

    def resolve(self, generation: int, candidate: Mapping[str, Any]) -> bool:
        """Apply an extraction result.

        Returns:
            False if the result is stale and was discarded, True otherwise
            (the session is then ready, or failed if normalization failed).
        """
        if not self._is_current(generation):
            return False
        try:
            record = normalize(candidate)
        except NormalizationError as e:
            return self.reject(generation, e)

        self.store.set(record)
        self.state = SessionState.READY
        logger.info("Extraction %d complete (%s)", generation, record.merchant_name)
        return True

    def reject(self, generation: int, error: Exception) -> bool:
        """Record a failed extraction. Returns False if the failure is stale."""
        if not self._is_current(generation):
            return False
        self.store.clear()
        message = str(error) if isinstance(error, ReceiptReformError) else ""
        self.error_message = message or GENERIC_FAILURE_MESSAGE
        self.state = SessionState.FAILED
        logger.error("Extraction %d failed: %s", generation, self.error_message)
        return True

    def process(self, document: UploadedDocument) -> SessionState:
        """Run a full upload: begin, invoke the extractor, apply the result.

        Extraction and normalization failures leave the session in the
        failed state instead of raising. Any other exception also fails the
        session, with the generic message, and is then re-raised.

        Raises:
            ConfigurationError: If the session has no extractor.
        """
        if self.extractor is None:
            raise ConfigurationError("No extractor configured for this session")

        generation = self.begin(document)
        try:
            result = self.extractor.invoke(document.content, document.mime_type)
        except ReceiptReformError as e:
            self.reject(generation, e)
        except Exception as e:
            logger.exception("Unexpected error during extraction %d", generation)
            self.reject(generation, e)
            raise
        else:
            self.resolve(generation, result.candidate)
        return self.state

    def reset(self) -> None:
        """Discard the live record; any pending result becomes stale."""
        self.generation += 1
        self.store.clear()
        self.document = None
        self.error_message = None
        self.state = SessionState.EMPTY
        logger.info("Session reset")

    def edit_date(self, new_date: str) -> ReceiptRecord:
        """Correct the record date; see :meth:`RecordStore.apply_date_edit`."""
        self._require_ready("edit")
        return self.store.apply_date_edit(new_date)

    def clipboard_json(self) -> str:
        self._require_ready("copy")
        return self.store.to_clipboard_json()

    def view(self) -> ViewNode:
        """Current on-screen presentation of the displayed record."""
        self._require_ready("display")
        displayed = self.store.displayed
        assert displayed is not None
        return build_receipt_view(displayed, self.export_config)

    def export(
        self,
        exporter: PrintExporter,
        live_values: Mapping[str, str] | None = None,
    ) -> PrintDocument:
        """Print the current view.

        Raises:
            RecordNotReadyError: Unless extraction has completed.
            ExportError: If the snapshot or the surface fails; the record
                is unaffected.
        """
        self._require_ready("export")
        return exporter.export(self.view(), live_values)

    def _is_current(self, generation: int) -> bool:
        if generation != self.generation or self.state is not SessionState.EXTRACTING:
            logger.warning(
                "Discarding stale result of extraction %d (current %d, %s)",
                generation,
                self.generation,
                self.state.value,
            )
            return False
        return True

    def _require_ready(self, action: str) -> None:
        if self.state is not SessionState.READY:
            raise RecordNotReadyError(
                f"Cannot {action}: the session is {self.state.value}, not ready"
            )
