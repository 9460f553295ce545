"""Tests for the session state machine."""

from typing import Any
from unittest.mock import MagicMock

import pytest

from receipt_reform import (
    ConfigurationError,
    ExtractionResult,
    ReceiptExtractor,
    ReceiptSession,
    RecordNotReadyError,
    SessionState,
    TransportError,
    UploadedDocument,
)
from receipt_reform.export import PrintExporter, PrintRenderer
from receipt_reform.session.session import GENERIC_FAILURE_MESSAGE

CANDIDATE: dict[str, Any] = {
    "merchantName": "Cafe Aurora",
    "date": "2024-03-15",
    "items": [{"description": "Espresso", "quantity": 2, "unitPrice": 3.5, "totalPrice": 7.0}],
    "subtotal": 7.0,
    "tax": 0.7,
    "total": 7.7,
    "currency": "EUR",
    "category": "Dining",
    "confidence": 0.95,
}

DOCUMENT = UploadedDocument(content=b"\xff\xd8\xff", mime_type="image/jpeg", filename="r.jpg")


@pytest.fixture
def mock_extractor() -> MagicMock:
    extractor = MagicMock(spec=ReceiptExtractor)
    extractor.invoke.return_value = ExtractionResult(candidate=CANDIDATE, model_used="mock-model")
    return extractor


@pytest.fixture
def ready_session(mock_extractor: MagicMock) -> ReceiptSession:
    session = ReceiptSession(extractor=mock_extractor)
    session.process(DOCUMENT)
    return session


class TestSessionLifecycle:
    """Tests for state transitions."""

    def test_initial_state(self) -> None:
        """Test a new session is empty."""
        session = ReceiptSession()

        assert session.state is SessionState.EMPTY
        assert session.generation == 0
        assert session.record is None

    def test_begin(self) -> None:
        """Test an upload moves the session to extracting."""
        session = ReceiptSession()

        generation = session.begin(DOCUMENT)

        assert generation == 1
        assert session.state is SessionState.EXTRACTING
        assert session.document is DOCUMENT
        assert session.record is None

    def test_resolve(self) -> None:
        """Test a current result makes the session ready."""
        session = ReceiptSession()
        generation = session.begin(DOCUMENT)

        assert session.resolve(generation, CANDIDATE) is True

        assert session.state is SessionState.READY
        assert session.record is not None
        assert session.record.merchant_name == "Cafe Aurora"

    def test_stale_result_after_reset_is_discarded(self) -> None:
        """Test a result that arrives after a reset never shows up."""
        session = ReceiptSession()
        generation = session.begin(DOCUMENT)

        session.reset()
        applied = session.resolve(generation, CANDIDATE)

        assert applied is False
        assert session.state is SessionState.EMPTY
        assert session.record is None
        assert session.store.record is None

    def test_stale_result_after_new_upload_is_discarded(self) -> None:
        """Test only the latest upload's result is applied."""
        session = ReceiptSession()
        first = session.begin(DOCUMENT)
        second = session.begin(DOCUMENT)

        assert session.resolve(first, CANDIDATE) is False
        assert session.state is SessionState.EXTRACTING

        assert session.resolve(second, CANDIDATE) is True
        assert session.state is SessionState.READY

    def test_stale_failure_is_discarded(self) -> None:
        """Test a late failure does not override the current state."""
        session = ReceiptSession()
        generation = session.begin(DOCUMENT)
        session.reset()

        assert session.reject(generation, TransportError("offline")) is False
        assert session.state is SessionState.EMPTY
        assert session.error_message is None

    def test_normalization_failure(self) -> None:
        """Test a candidate without totals fails the session."""
        session = ReceiptSession()
        generation = session.begin(DOCUMENT)
        candidate = {key: value for key, value in CANDIDATE.items() if key != "total"}

        assert session.resolve(generation, candidate) is True

        assert session.state is SessionState.FAILED
        assert "total" in (session.error_message or "")
        assert session.record is None

    def test_reset_from_ready(self, ready_session: ReceiptSession) -> None:
        """Test a reset discards the live record."""
        generation = ready_session.generation

        ready_session.reset()

        assert ready_session.state is SessionState.EMPTY
        assert ready_session.generation == generation + 1
        assert ready_session.record is None
        assert ready_session.document is None


class TestProcess:
    """Tests for ReceiptSession.process."""

    def test_process_success(self, mock_extractor: MagicMock) -> None:
        """Test a full run ends ready."""
        session = ReceiptSession(extractor=mock_extractor)

        state = session.process(DOCUMENT)

        assert state is SessionState.READY
        mock_extractor.invoke.assert_called_once_with(DOCUMENT.content, "image/jpeg")

    def test_process_failure(self, mock_extractor: MagicMock) -> None:
        """Test extraction errors leave the session failed instead of raising."""
        mock_extractor.invoke.side_effect = TransportError("LLM call failed: offline")
        session = ReceiptSession(extractor=mock_extractor)

        state = session.process(DOCUMENT)

        assert state is SessionState.FAILED
        assert session.error_message == "LLM call failed: offline"
        assert session.store.record is None

    def test_retry_after_failure(self, mock_extractor: MagicMock) -> None:
        """Test a failed session accepts a new upload."""
        mock_extractor.invoke.side_effect = [TransportError("offline"), mock_extractor.invoke.return_value]
        session = ReceiptSession(extractor=mock_extractor)

        assert session.process(DOCUMENT) is SessionState.FAILED
        assert session.process(DOCUMENT) is SessionState.READY
        assert session.error_message is None

    def test_unexpected_error_fails_session(self, mock_extractor: MagicMock) -> None:
        """Test an unexpected error leaves the session failed, then propagates."""
        mock_extractor.invoke.side_effect = RuntimeError("page buffer exhausted")
        session = ReceiptSession(extractor=mock_extractor)

        with pytest.raises(RuntimeError, match="page buffer exhausted"):
            session.process(DOCUMENT)

        assert session.state is SessionState.FAILED
        assert session.error_message == GENERIC_FAILURE_MESSAGE
        assert session.store.record is None

    def test_other_library_errors_fail_session(self, mock_extractor: MagicMock) -> None:
        """Test non-extraction errors of the package are reported, not raised."""
        mock_extractor.invoke.side_effect = ConfigurationError("GEMINI_API_KEY environment variable is not set")
        session = ReceiptSession(extractor=mock_extractor)

        assert session.process(DOCUMENT) is SessionState.FAILED
        assert session.error_message == "GEMINI_API_KEY environment variable is not set"

    def test_process_without_extractor(self) -> None:
        """Test processing needs an extractor."""
        with pytest.raises(ConfigurationError):
            ReceiptSession().process(DOCUMENT)


class TestReadyOperations:
    """Tests for operations that need a ready session."""

    def test_edit_date(self, ready_session: ReceiptSession) -> None:
        """Test date edits reach the displayed record."""
        ready_session.edit_date("2024-03-16")

        assert ready_session.record is not None
        assert ready_session.record.date == "2024-03-16"
        assert '"date": "2024-03-16"' in ready_session.clipboard_json()

    def test_view_reflects_edits(self, ready_session: ReceiptSession) -> None:
        """Test the view is built from the displayed record."""
        ready_session.edit_date("2024-03-16")

        date_input = next(node for node in ready_session.view().walk() if node.binding == "date")

        assert date_input.attrs["value"] == "2024-03-16"

    @pytest.mark.parametrize("state", [SessionState.EMPTY, SessionState.EXTRACTING, SessionState.FAILED])
    def test_not_ready(self, state: SessionState) -> None:
        """Test edits, copies and exports need a ready session."""
        session = ReceiptSession()
        session.state = state
        exporter = MagicMock(spec=PrintExporter)

        with pytest.raises(RecordNotReadyError):
            session.edit_date("2024-03-16")
        with pytest.raises(RecordNotReadyError):
            session.clipboard_json()
        with pytest.raises(RecordNotReadyError):
            session.view()
        with pytest.raises(RecordNotReadyError):
            session.export(exporter)

        exporter.export.assert_not_called()

    def test_export(self, ready_session: ReceiptSession) -> None:
        """Test export hands the current view to the exporter."""
        surface = MagicMock()
        exporter = PrintExporter(PrintRenderer(), surface)

        document = ready_session.export(exporter, {"date": "2024-03-20"})

        surface.open.assert_called_once_with(document)
        assert "2024-03-20" in document.html
        assert ready_session.state is SessionState.READY
