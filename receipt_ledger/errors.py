"""
Errors raised by receipt_ledger.

Every failure a user can hit while scanning or editing the ledger maps to
one of these. Messages are meant to be shown as-is.
"""

from typing import Optional


class ReceiptLedgerError(Exception):
    """Base class for all receipt_ledger errors."""


class UnsupportedFormatError(ReceiptLedgerError):
    """Input is neither an image nor a PDF."""

    def __init__(self, mime_type: Optional[str]):
        self.mime_type = mime_type
        super().__init__(f"Unsupported file type: {mime_type or 'unknown'}")


class DocumentRenderError(ReceiptLedgerError):
    """PDF could not be opened or rendered to an image."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to render PDF: {reason}")


class ProviderError(ReceiptLedgerError):
    """Transport or HTTP failure talking to the inference provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class EmptyResponseError(ReceiptLedgerError):
    """Provider answered 2xx but returned no candidate text."""

    def __init__(self):
        super().__init__("Provider returned no text in its response")


class MalformedExtractionError(ReceiptLedgerError):
    """Model output was not a JSON object."""

    def __init__(self, text: str, reason: str = ""):
        self.text = text
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Model did not return valid JSON{detail}")


class PersistenceError(ReceiptLedgerError):
    """Reading or writing local state failed."""


class RecordNotFoundError(ReceiptLedgerError):
    """No ledger record has the given id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"No receipt with id {record_id}")


class ConfigurationError(ReceiptLedgerError):
    """Required setting (API key, model) is missing or invalid."""


class WorkflowStateError(ReceiptLedgerError):
    """Operation is not allowed in the workflow's current state."""
