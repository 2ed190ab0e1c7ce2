"""
Gemini Extraction Client: receipt field extraction via generateContent.

Sends one receipt image plus a fixed instruction, asks for a JSON response,
and turns the answer into an ExtractedReceipt. One attempt per call; the
caller decides whether to try again.
"""

import json
import logging
import re
import time
from typing import Any, Dict, Optional

from receipt_ledger.errors import EmptyResponseError, MalformedExtractionError
from receipt_ledger.gemini.http import GeminiHTTP
from receipt_ledger.schema import ExtractedReceipt

logger = logging.getLogger(__name__)

GENERATE_METHOD = "generateContent"

EXTRACTION_PROMPT = """You are a meticulous bookkeeping assistant.
From the receipt provided (a photo, or the first page of a PDF rendered as an image),
extract the following fields and answer ONLY with a JSON object in the exact format below.
If a field cannot be read, return an empty string ("") for it.

Fields:
1. date: purchase date (format: YYYY/MM/DD)
2. amount: total amount paid (number only, no currency symbol)
3. payee: store or payee name
4. description: short summary of what was bought or what it was for

Response format:
{
  "date": "2024/01/25",
  "amount": 1250,
  "payee": "Starbucks",
  "description": "coffee, sandwich"
}"""

_LEADING_FENCE = re.compile(r"^```json[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")


def strip_code_fence(text: str) -> str:
    """Remove a leading ```json and a trailing ``` marker (each optional)."""
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_extraction_text(text: str) -> ExtractedReceipt:
    """Parse cleaned model text into an ExtractedReceipt."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedExtractionError(text, str(e)) from e
    if not isinstance(payload, dict):
        raise MalformedExtractionError(text, f"expected an object, got {type(payload).__name__}")
    return ExtractedReceipt.from_payload(payload)


def build_request_body(image_data: str, mime_type: str, prompt: str = EXTRACTION_PROMPT) -> Dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": mime_type, "data": image_data}},
                ]
            }
        ],
        "generationConfig": {"response_mime_type": "application/json"},
    }


def first_candidate_text(data: Dict[str, Any]) -> Optional[str]:
    """candidates[0].content.parts[0].text, or None if any step is missing."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class GeminiExtractionClient(GeminiHTTP):
    """Receipt extraction against the Gemini generateContent endpoint."""

    def __init__(self, *args, prompt: str = EXTRACTION_PROMPT, **kwargs):
        super().__init__(*args, **kwargs)
        self.prompt = prompt
        self.call_count = 0
        self.total_time_ms = 0.0

    async def extract(
        self,
        api_key: str,
        image_data: str,
        mime_type: str,
        model_id: str,
    ) -> ExtractedReceipt:
        """
        Extract receipt fields from an image.

        Args:
            api_key: Provider API key
            image_data: Base64-encoded image
            mime_type: MIME type of image_data
            model_id: Model id, e.g. "gemini-2.0-flash"

        Returns:
            ExtractedReceipt; fields the model omitted are None
        """
        model = model_id.split("/")[-1]
        logger.info(f"Starting extraction with {model} ({mime_type})")

        self.call_count += 1
        start_time = time.time()
        try:
            data = await self._request(
                "POST",
                f"models/{model}:{GENERATE_METHOD}",
                api_key,
                json=build_request_body(image_data, mime_type, self.prompt),
            )
        finally:
            self.total_time_ms += (time.time() - start_time) * 1000

        text = first_candidate_text(data)
        if not text:
            logger.error("Empty response text from provider")
            raise EmptyResponseError()

        logger.debug(f"Raw response text: {text[:200]}")
        result = parse_extraction_text(strip_code_fence(text))
        if result.missing_fields:
            logger.info(f"Extraction missing fields: {', '.join(result.missing_fields)}")
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "call_count": self.call_count,
            "total_time_ms": self.total_time_ms,
            "avg_time_ms": self.total_time_ms / max(self.call_count, 1),
        }
