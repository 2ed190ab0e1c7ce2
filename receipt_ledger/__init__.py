"""
Receipt Ledger - scan receipts with a vision model into a local expense ledger.

Receipts (images or PDFs) are normalised to a single image, sent to Gemini
for field extraction, reviewed, and stored in a newest-first ledger that can
be exported to CSV.

Usage:
    from receipt_ledger import ReceiptApp

    app = ReceiptApp.from_path("ledger.json")
    workflow = app.new_workflow()
    draft = await workflow.scan("receipt.jpg")
    if draft:
        workflow.edit_review(description="team lunch")
        workflow.commit()
    print(app.ledger.total())
"""

from receipt_ledger.app import ReceiptApp
from receipt_ledger.errors import (
    ConfigurationError,
    DocumentRenderError,
    EmptyResponseError,
    MalformedExtractionError,
    PersistenceError,
    ProviderError,
    ReceiptLedgerError,
    RecordNotFoundError,
    UnsupportedFormatError,
    WorkflowStateError,
)
from receipt_ledger.gemini import GeminiExtractionClient, GeminiModelCatalog
from receipt_ledger.ledger import LedgerStore
from receipt_ledger.normalizer import DocumentNormalizer, NormalizedDocument
from receipt_ledger.schema import ExtractedReceipt, ModelDescriptor, ReceiptRecord
from receipt_ledger.settings import AppSettings, SettingsStore
from receipt_ledger.storage import JsonFileStorage, MemoryStorage, StorageBackend
from receipt_ledger.workflow import IngestionWorkflow, ScanState

__version__ = "1.0.0"

__all__ = [
    # App state
    "ReceiptApp",
    "AppSettings",
    "SettingsStore",
    # Pipeline
    "DocumentNormalizer",
    "NormalizedDocument",
    "GeminiExtractionClient",
    "GeminiModelCatalog",
    "IngestionWorkflow",
    "ScanState",
    # Ledger & storage
    "LedgerStore",
    "StorageBackend",
    "JsonFileStorage",
    "MemoryStorage",
    # Schema
    "ReceiptRecord",
    "ExtractedReceipt",
    "ModelDescriptor",
    # Errors
    "ReceiptLedgerError",
    "UnsupportedFormatError",
    "DocumentRenderError",
    "ProviderError",
    "EmptyResponseError",
    "MalformedExtractionError",
    "PersistenceError",
    "RecordNotFoundError",
    "ConfigurationError",
    "WorkflowStateError",
]
