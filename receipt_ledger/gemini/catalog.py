"""Model catalog: which provider models can run receipt extraction."""

import logging
from typing import Any, Dict, List

from receipt_ledger.gemini.client import GENERATE_METHOD
from receipt_ledger.gemini.http import GeminiHTTP
from receipt_ledger.schema import ModelDescriptor

logger = logging.getLogger(__name__)


def supports_generation(model: Dict[str, Any]) -> bool:
    methods = model.get("supportedGenerationMethods") or []
    return GENERATE_METHOD in methods


def to_descriptor(model: Dict[str, Any]) -> ModelDescriptor:
    # "models/gemini-1.5-flash" -> "gemini-1.5-flash"
    return ModelDescriptor(
        id=str(model.get("name", "")).split("/")[-1],
        display_name=model.get("displayName"),
        description=model.get("description"),
    )


class GeminiModelCatalog(GeminiHTTP):
    """Lists provider models that support generateContent."""

    async def list_models(self, api_key: str) -> List[ModelDescriptor]:
        logger.info("Fetching available models")
        data = await self._request("GET", "models", api_key)

        models = [
            to_descriptor(m)
            for m in data.get("models") or []
            if isinstance(m, dict) and m.get("name") and supports_generation(m)
        ]
        logger.debug(f"{len(models)} model(s) support {GENERATE_METHOD}")
        return models
