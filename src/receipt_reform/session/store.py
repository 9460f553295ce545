"""Canonical record store: the one live record plus user edits."""

import logging

from receipt_reform.core.exceptions import InvalidDateError, RecordNotReadyError
from receipt_reform.results.normalizer import parse_calendar_date
from receipt_reform.schemas.receipt import ReceiptRecord

logger = logging.getLogger(__name__)


class RecordStore:
    """Holds the normalized record and the edits applied on top of it.

    ``record`` is the record as extracted; ``displayed`` is the same record
    with pending edits merged in, which is what the view and the clipboard
    export use.
    """

    def __init__(self) -> None:
        self._record: ReceiptRecord | None = None
        self._edits: dict[str, str] = {}

    @property
    def record(self) -> ReceiptRecord | None:
        return self._record

    @property
    def displayed(self) -> ReceiptRecord | None:
        if self._record is None:
            return None
        if not self._edits:
            return self._record
        return self._record.model_copy(update=self._edits)

    @property
    def edits(self) -> dict[str, str]:
        return dict(self._edits)

    def set(self, record: ReceiptRecord) -> None:
        """Replace the live record and drop previous edits."""
        self._record = record
        self._edits = {}

    def apply_date_edit(self, new_date: str) -> ReceiptRecord:
        """Correct the record date.

        Args:
            new_date: ISO date or any format the normalizer understands.

        Returns:
            The displayed record after the edit.

        Raises:
            RecordNotReadyError: If there is no record to edit.
            InvalidDateError: If ``new_date`` is not a calendar date; the
                previous value is kept.
        """
        if self._record is None:
            raise RecordNotReadyError("There is no record to edit.")

        iso_date = parse_calendar_date(new_date)
        if iso_date is None:
            logger.warning("Rejected date edit %r", new_date)
            raise InvalidDateError(f"Not a valid date: {new_date!r}", value=new_date)

        self._edits["date"] = iso_date
        logger.info("Date edited to %s", iso_date)
        displayed = self.displayed
        assert displayed is not None
        return displayed

    def clear(self) -> None:
        self._record = None
        self._edits = {}

    def to_clipboard_json(self) -> str:
        """Serialize the displayed record as indented JSON with wire names."""
        displayed = self.displayed
        if displayed is None:
            raise RecordNotReadyError("There is no record to copy.")
        return displayed.model_dump_json(by_alias=True, indent=2)

    @staticmethod
    def from_clipboard_json(text: str) -> ReceiptRecord:
        """Parse a record previously produced by :meth:`to_clipboard_json`."""
        return ReceiptRecord.model_validate_json(text)
