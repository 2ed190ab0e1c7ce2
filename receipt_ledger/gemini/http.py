"""Shared HTTP plumbing for the Gemini REST API."""

import logging
import os
from typing import Any, Dict, Optional

import httpx

from receipt_ledger.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_TIMEOUT = 120.0
API_VERSION = "v1beta"


def provider_error_from_response(response: httpx.Response) -> ProviderError:
    """Build a ProviderError from a non-2xx response ({error: {message}} if present)."""
    message = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
    return ProviderError(message or f"HTTP {response.status_code}", response.status_code)


def _timeout_from_env() -> float:
    raw = os.getenv("GEMINI_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"GEMINI_TIMEOUT must be a number of seconds, got {raw!r}") from None


class GeminiHTTP:
    """
    Base for Gemini endpoints.

    Reads from environment when arguments are omitted:
    - GEMINI_BASE_URL: API host (default: https://generativelanguage.googleapis.com)
    - GEMINI_TIMEOUT: request timeout in seconds (default: 120)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout if timeout is not None else _timeout_from_env()
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{API_VERSION}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        api_key: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Single attempt, no retry. Any failure surfaces as ProviderError."""
        url = self._url(path)
        logger.debug(f"{method} {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, params={"key": api_key}, json=json)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to provider failed: {e}") from e

        if not response.is_success:
            error = provider_error_from_response(response)
            logger.error(f"Provider error {response.status_code}: {error}")
            raise error

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Provider returned a non-JSON body (HTTP {response.status_code})") from e
        if not isinstance(data, dict):
            raise ProviderError("Provider returned an unexpected response body")
        return data
