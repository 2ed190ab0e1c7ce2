"""
User settings: API key, model, theme and the cached model catalog.

Stored through a StorageBackend under the key names the browser frontend
uses in localStorage.
"""

import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from receipt_ledger.errors import ConfigurationError
from receipt_ledger.schema import ModelDescriptor
from receipt_ledger.storage import StorageBackend

logger = logging.getLogger(__name__)

API_KEY_KEY = "gemini_api_key"
MODEL_KEY = "gemini_model"
THEME_KEY = "gemini_theme"
MODELS_KEY = "gemini_available_models"

DEFAULT_MODEL = "gemini-1.5-flash-latest"
PRESET_MODELS = ["gemini-1.5-flash-latest", "gemini-1.5-flash-8b", "gemini-2.0-flash"]
THEMES = ("light", "dark")


class AppSettings(BaseModel):
    """Current user configuration."""

    api_key: str = ""
    model: str = DEFAULT_MODEL
    theme: str = "light"
    available_models: List[ModelDescriptor] = Field(default_factory=list)

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v):
        if v not in THEMES:
            raise ValueError(f"theme must be one of {', '.join(THEMES)}")
        return v

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def is_custom_model(self) -> bool:
        return self.model not in known_models(self)

    def masked_api_key(self) -> str:
        if not self.api_key:
            return "(not set)"
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"


def known_models(settings: AppSettings) -> List[str]:
    """Preset model ids followed by cached catalog ids, without duplicates."""
    seen = []
    for model_id in PRESET_MODELS + [m.id for m in settings.available_models]:
        if model_id not in seen:
            seen.append(model_id)
    return seen


class SettingsStore:
    """
    Load and save AppSettings.

    Reads from environment (these win over stored values):
    - GEMINI_API_KEY: API key
    - GEMINI_MODEL: model id
    """

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    def _stored_text(self, key: str) -> Optional[str]:
        value = self._storage.get(key)
        if value is not None and not isinstance(value, str):
            logger.warning(f"Ignoring non-text value stored under {key!r}")
            return None
        return value

    def _cached_models(self) -> List[ModelDescriptor]:
        cached = self._storage.get(MODELS_KEY) or []
        if not isinstance(cached, list):
            logger.warning("Ignoring malformed model cache")
            return []

        models = []
        for m in cached:
            if not isinstance(m, dict) or not m.get("id"):
                continue
            try:
                models.append(ModelDescriptor(**m))
            except ValidationError:
                logger.warning(f"Skipping invalid cached model {m!r}")
        return models

    def load(self) -> AppSettings:
        theme = self._stored_text(THEME_KEY) or "light"
        if theme not in THEMES:
            logger.warning(f"Ignoring unknown stored theme {theme!r}")
            theme = "light"

        return AppSettings(
            api_key=os.getenv("GEMINI_API_KEY") or self._stored_text(API_KEY_KEY) or "",
            model=os.getenv("GEMINI_MODEL") or self._stored_text(MODEL_KEY) or DEFAULT_MODEL,
            theme=theme,
            available_models=self._cached_models(),
        )

    def save(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        theme: Optional[str] = None,
    ) -> AppSettings:
        """Persist the given values; None leaves a setting untouched."""
        if model is not None and not model.strip():
            raise ConfigurationError("Model id cannot be empty")
        if theme is not None and theme not in THEMES:
            raise ConfigurationError(f"Theme must be one of {', '.join(THEMES)}")

        if api_key is not None:
            self._storage.set(API_KEY_KEY, api_key)
        if model is not None:
            self._storage.set(MODEL_KEY, model.strip())
        if theme is not None:
            self._storage.set(THEME_KEY, theme)
        return self.load()

    def delete_api_key(self) -> None:
        self._storage.delete(API_KEY_KEY)

    def cache_models(self, models: List[ModelDescriptor]) -> None:
        self._storage.set(MODELS_KEY, [m.model_dump() for m in models])
