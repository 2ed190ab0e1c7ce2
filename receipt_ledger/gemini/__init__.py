"""
Gemini integration: receipt extraction and model listing over the REST API.

Usage:
    from receipt_ledger.gemini import GeminiExtractionClient

    client = GeminiExtractionClient()
    receipt = await client.extract(api_key, image_b64, "image/png", "gemini-2.0-flash")
"""

from receipt_ledger.gemini.catalog import GeminiModelCatalog
from receipt_ledger.gemini.client import (
    EXTRACTION_PROMPT,
    GeminiExtractionClient,
    parse_extraction_text,
    strip_code_fence,
)

__all__ = [
    "EXTRACTION_PROMPT",
    "GeminiExtractionClient",
    "GeminiModelCatalog",
    "parse_extraction_text",
    "strip_code_fence",
]
