"""Test helpers shared across modules."""

import base64
import json

import httpx

from receipt_ledger.errors import PersistenceError
from receipt_ledger.storage import MemoryStorage

# Signature plus a few bytes; images are passed through, never decoded.
FAKE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FlakyStorage(MemoryStorage):
    """MemoryStorage whose writes can be switched to fail."""

    def __init__(self, *args, **kwargs):
        self.fail_writes = False
        super().__init__(*args, **kwargs)

    def set(self, key, value):
        if self.fail_writes:
            raise PersistenceError("disk full")
        super().set(key, value)


def gemini_text_response(text, status_code=200):
    """generateContent response wrapping the given text."""
    return httpx.Response(
        status_code,
        json={"candidates": [{"content": {"parts": [{"text": text}]}}]},
    )


def receipt_json(**overrides):
    payload = {"date": "2024/01/25", "amount": 1250, "payee": "Starbucks", "description": "coffee"}
    payload.update(overrides)
    return json.dumps(payload)


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def png_size(png_bytes: bytes):
    """(width, height) from a PNG IHDR chunk."""
    return int.from_bytes(png_bytes[16:20], "big"), int.from_bytes(png_bytes[20:24], "big")
