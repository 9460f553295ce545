"""Custom exceptions for receipt-reform."""

from typing import Any


class ReceiptReformError(Exception):
    """Base exception for all receipt-reform errors."""

    pass


class InputValidationError(ReceiptReformError):
    """Raised when an uploaded file or a user edit is rejected."""

    pass


class InvalidDateError(InputValidationError):
    """Raised when a date edit cannot be parsed to a calendar date."""

    def __init__(self, message: str, value: str | None = None) -> None:
        super().__init__(message)
        self.value = value


class ConfigurationError(ReceiptReformError):
    """Raised when credentials or configuration are missing or invalid."""

    pass


class ExtractionError(ReceiptReformError):
    """Raised when extraction fails."""

    def __init__(
        self,
        message: str,
        raw_response: str | None = None,
        last_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.raw_response = raw_response
        self.last_error = last_error


class ExtractionValidationError(ExtractionError):
    """Raised when the model answered but the output is not parseable."""

    def __init__(
        self,
        message: str,
        validation_errors: Any = None,
        raw_response: str | None = None,
    ) -> None:
        super().__init__(message, raw_response=raw_response)
        self.validation_errors = validation_errors


class LLMError(ExtractionError):
    """Raised when the LLM client fails."""

    pass


class TransportError(LLMError):
    """Raised when the request never got a response (network, timeout)."""

    pass


class ServiceError(LLMError):
    """Raised when the external service reports a failure."""

    pass


class NormalizationError(ReceiptReformError):
    """Raised when a required field is missing or cannot be coerced."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ExportError(ReceiptReformError):
    """Base class for print export failures. The record is never affected."""

    pass


class SnapshotNotFoundError(ExportError):
    """Raised when there is nothing to export."""

    pass


class SurfaceBlockedError(ExportError):
    """Raised when the print surface could not be opened."""

    pass


class RecordNotReadyError(ReceiptReformError):
    """Raised when a record is edited or exported before extraction completed."""

    pass
