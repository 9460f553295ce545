"""Live record store and session state machine."""

from receipt_reform.session.session import ReceiptSession, SessionState
from receipt_reform.session.store import RecordStore

__all__ = ["ReceiptSession", "SessionState", "RecordStore"]
