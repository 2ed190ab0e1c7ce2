"""
ReceiptApp: explicit application state.

Holds the storage backend and everything built on it (settings, ledger,
provider clients). Components receive it, or the pieces they need, instead
of reaching for globals.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from receipt_ledger.errors import ConfigurationError
from receipt_ledger.gemini.catalog import GeminiModelCatalog
from receipt_ledger.gemini.client import GeminiExtractionClient
from receipt_ledger.ledger import LedgerStore
from receipt_ledger.normalizer import DocumentNormalizer
from receipt_ledger.schema import ModelDescriptor
from receipt_ledger.settings import AppSettings, SettingsStore
from receipt_ledger.storage import JsonFileStorage, StorageBackend
from receipt_ledger.workflow import IngestionWorkflow

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = "~/.receipt_ledger.json"


def default_data_path() -> Path:
    """RECEIPT_LEDGER_DATA, else ~/.receipt_ledger.json."""
    return Path(os.getenv("RECEIPT_LEDGER_DATA", DEFAULT_DATA_FILE)).expanduser()


class ReceiptApp:
    def __init__(
        self,
        storage: StorageBackend,
        client: Optional[GeminiExtractionClient] = None,
        catalog: Optional[GeminiModelCatalog] = None,
        normalizer: Optional[DocumentNormalizer] = None,
    ):
        self.storage = storage
        self.settings_store = SettingsStore(storage)
        self.ledger = LedgerStore(storage)
        self.client = client or GeminiExtractionClient()
        self.catalog = catalog or GeminiModelCatalog()
        self.normalizer = normalizer or DocumentNormalizer()

    @classmethod
    def from_path(cls, path: Optional[Path] = None, **kwargs) -> "ReceiptApp":
        path = Path(path) if path else default_data_path()
        logger.debug(f"Using data file {path}")
        return cls(JsonFileStorage(path), **kwargs)

    @property
    def settings(self) -> AppSettings:
        return self.settings_store.load()

    def new_workflow(self) -> IngestionWorkflow:
        settings = self.settings
        return IngestionWorkflow(
            ledger=self.ledger,
            client=self.client,
            api_key=settings.api_key,
            model_id=settings.model,
            normalizer=self.normalizer,
        )

    async def refresh_models(self) -> List[ModelDescriptor]:
        """Query the provider's catalog and cache the result."""
        settings = self.settings
        if not settings.has_api_key:
            raise ConfigurationError("Set an API key before fetching models")
        models = await self.catalog.list_models(settings.api_key)
        self.settings_store.cache_models(models)
        return models

    def clear_history(self) -> None:
        self.ledger.clear()
