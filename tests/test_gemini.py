"""Tests for the Gemini extraction client and model catalog."""

import json

import httpx
import pytest

from helpers import gemini_text_response, receipt_json
from receipt_ledger.errors import (
    ConfigurationError,
    EmptyResponseError,
    MalformedExtractionError,
    ProviderError,
)
from receipt_ledger.gemini.catalog import GeminiModelCatalog
from receipt_ledger.gemini.client import (
    EXTRACTION_PROMPT,
    GeminiExtractionClient,
    build_request_body,
    first_candidate_text,
    parse_extraction_text,
    strip_code_fence,
)


def make_client(handler, cls=GeminiExtractionClient):
    return cls(base_url="https://gemini.test", timeout=5.0, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Response text handling
# ---------------------------------------------------------------------------

class TestStripCodeFence:
    def test_plain_json_untouched(self):
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_fenced_json(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_fence_without_newlines(self):
        assert strip_code_fence('```json{"a": 1}```') == '{"a": 1}'

    def test_only_leading_marker(self):
        assert strip_code_fence('```json\n{"a": 1}') == '{"a": 1}'

    def test_surrounding_whitespace(self):
        assert strip_code_fence('  \n```json\n{"a": 1}\n```\n ') == '{"a": 1}'

    def test_marker_in_middle_kept(self):
        text = '{"note": "```json"}'
        assert strip_code_fence(text) == text


class TestParseExtractionText:
    def test_fenced_equals_unwrapped(self):
        body = '{"date":"2024/01/25","amount":1250,"payee":"A","description":"B"}'
        fenced = parse_extraction_text(strip_code_fence(f"```json\n{body}\n```"))
        plain = parse_extraction_text(strip_code_fence(body))
        assert fenced == plain
        assert fenced.payee == "A"

    def test_not_json(self):
        with pytest.raises(MalformedExtractionError) as exc:
            parse_extraction_text("Sorry, I cannot read this receipt.")
        assert exc.value.text == "Sorry, I cannot read this receipt."

    def test_json_but_not_object(self):
        with pytest.raises(MalformedExtractionError):
            parse_extraction_text("[1, 2, 3]")

    def test_malformed_is_not_provider_error(self):
        with pytest.raises(MalformedExtractionError) as exc:
            parse_extraction_text("{")
        assert not isinstance(exc.value, ProviderError)


class TestFirstCandidateText:
    def test_present(self):
        assert first_candidate_text({"candidates": [{"content": {"parts": [{"text": "x"}]}}]}) == "x"

    @pytest.mark.parametrize(
        "data",
        [{}, {"candidates": []}, {"candidates": [{}]}, {"candidates": [{"content": {"parts": []}}]},
         {"candidates": [{"content": {"parts": [{"inline_data": {}}]}}]}],
    )
    def test_absent(self, data):
        assert first_candidate_text(data) is None


class TestRequestBody:
    def test_shape(self):
        body = build_request_body("QUJD", "image/png")
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"text": EXTRACTION_PROMPT}
        assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "QUJD"}}
        assert body["generationConfig"] == {"response_mime_type": "application/json"}

    def test_prompt_names_all_fields(self):
        for field in ("date", "amount", "payee", "description", "YYYY/MM/DD"):
            assert field in EXTRACTION_PROMPT


# ---------------------------------------------------------------------------
# GeminiExtractionClient
# ---------------------------------------------------------------------------

class TestGeminiExtractionClient:
    @pytest.mark.asyncio
    async def test_extract_success(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return gemini_text_response(receipt_json())

        client = make_client(handler)
        result = await client.extract("secret", "QUJD", "image/jpeg", "gemini-2.0-flash")

        assert result.date == "2024/01/25"
        assert result.amount == 1250.0
        assert result.payee == "Starbucks"
        assert result.is_complete

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.url.params["key"] == "secret"
        sent = json.loads(request.content)
        assert sent["contents"][0]["parts"][1]["inline_data"]["mime_type"] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_model_resource_name_accepted(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return gemini_text_response(receipt_json())

        await make_client(handler).extract("k", "QUJD", "image/png", "models/gemini-1.5-flash")
        assert paths == ["/v1beta/models/gemini-1.5-flash:generateContent"]

    @pytest.mark.asyncio
    async def test_fenced_response(self):
        client = make_client(lambda r: gemini_text_response(f"```json\n{receipt_json()}\n```"))
        result = await client.extract("k", "QUJD", "image/png", "m")
        assert result.payee == "Starbucks"

    @pytest.mark.asyncio
    async def test_partial_response_passes_through(self):
        client = make_client(lambda r: gemini_text_response('{"payee": "Lawson", "amount": ""}'))
        result = await client.extract("k", "QUJD", "image/png", "m")
        assert result.payee == "Lawson"
        assert result.missing_fields == ["date", "amount", "description"]

    @pytest.mark.asyncio
    async def test_http_error_uses_provider_message(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid."}})

        with pytest.raises(ProviderError) as exc:
            await make_client(handler).extract("bad", "QUJD", "image/png", "m")
        assert str(exc.value) == "API key not valid."
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_http_error_without_body(self):
        with pytest.raises(ProviderError) as exc:
            await make_client(lambda r: httpx.Response(503, text="upstream down")).extract("k", "QUJD", "image/png", "m")
        assert str(exc.value) == "HTTP 503"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc:
            await make_client(handler).extract("k", "QUJD", "image/png", "m")
        assert exc.value.status_code is None

    @pytest.mark.asyncio
    async def test_empty_response(self):
        client = make_client(lambda r: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(EmptyResponseError):
            await client.extract("k", "QUJD", "image/png", "m")

    @pytest.mark.asyncio
    async def test_blank_text_is_empty(self):
        client = make_client(lambda r: gemini_text_response(""))
        with pytest.raises(EmptyResponseError):
            await client.extract("k", "QUJD", "image/png", "m")

    @pytest.mark.asyncio
    async def test_non_json_text_is_malformed(self):
        client = make_client(lambda r: gemini_text_response("The total is 1250 yen."))
        with pytest.raises(MalformedExtractionError):
            await client.extract("k", "QUJD", "image/png", "m")

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(ProviderError):
            await make_client(handler).extract("k", "QUJD", "image/png", "m")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_stats(self):
        client = make_client(lambda r: gemini_text_response(receipt_json()))
        await client.extract("k", "QUJD", "image/png", "m")
        stats = client.get_stats()
        assert stats["call_count"] == 1
        assert stats["total_time_ms"] >= 0

    def test_stats_initial(self):
        assert GeminiExtractionClient().get_stats()["call_count"] == 0

    def test_env_configuration(self, monkeypatch):
        monkeypatch.setenv("GEMINI_BASE_URL", "http://localhost:8080/")
        monkeypatch.setenv("GEMINI_TIMEOUT", "7.5")
        client = GeminiExtractionClient()
        assert client.base_url == "http://localhost:8080"
        assert client.timeout == 7.5

    def test_bad_timeout_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_TIMEOUT", "soon")
        with pytest.raises(ConfigurationError):
            GeminiExtractionClient()


# ---------------------------------------------------------------------------
# GeminiModelCatalog
# ---------------------------------------------------------------------------

MODELS_RESPONSE = {
    "models": [
        {
            "name": "models/gemini-2.0-flash",
            "displayName": "Gemini 2.0 Flash",
            "description": "Fast multimodal model",
            "supportedGenerationMethods": ["generateContent", "countTokens"],
        },
        {
            "name": "models/text-embedding-004",
            "displayName": "Text Embedding 004",
            "description": "Embeddings",
            "supportedGenerationMethods": ["embedContent"],
        },
        {
            "name": "models/aqa",
            "displayName": "AQA",
        },
    ]
}


class TestGeminiModelCatalog:
    @pytest.mark.asyncio
    async def test_filters_and_maps(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=MODELS_RESPONSE)

        models = await make_client(handler, GeminiModelCatalog).list_models("secret")

        assert [m.id for m in models] == ["gemini-2.0-flash"]
        assert models[0].display_name == "Gemini 2.0 Flash"
        assert models[0].description == "Fast multimodal model"
        assert seen["request"].method == "GET"
        assert seen["request"].url.path == "/v1beta/models"
        assert seen["request"].url.params["key"] == "secret"

    @pytest.mark.asyncio
    async def test_empty_catalog(self):
        models = await make_client(lambda r: httpx.Response(200, json={}), GeminiModelCatalog).list_models("k")
        assert models == []

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "Permission denied"}})

        with pytest.raises(ProviderError) as exc:
            await make_client(handler, GeminiModelCatalog).list_models("k")
        assert str(exc.value) == "Permission denied"
        assert exc.value.status_code == 403
