"""Tests for generation providers.

All tests are deterministic and do not make real network calls.
"""

import json
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pydantic import SecretStr

from backend.app.config import Settings
from backend.app.errors import ProviderError, RequestValidationError
from backend.app.llm.providers import (
    DeterministicStubProvider,
    GeminiProvider,
    OpenAICompatibleProvider,
    get_provider,
    model_label,
    select_provider,
)
from backend.app.models.jobs import CustomModelConfig, StrategyJobRequest

BASE_URL = "https://gemini.test/v1beta"


def _gemini_payload(*texts: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


def _gemini(handler: object, api_key: str | None = "test_key") -> GeminiProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]
    return GeminiProvider(api_key=api_key, model="gemini-test", base_url=BASE_URL, client=client)


def _custom_config() -> CustomModelConfig:
    return CustomModelConfig(
        base_url="https://llm.test/v1", api_key=SecretStr("sk-test"), model_name="my-model"
    )


@pytest.mark.asyncio
async def test_gemini_generate_joins_parts() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.url.params["key"]
        seen["prompt"] = json.loads(request.content)["contents"][0]["parts"][0]["text"]
        return httpx.Response(200, json=_gemini_payload("Hello ", "world"))

    text = await _gemini(handler).generate("plan my exam")

    assert text == "Hello world"
    assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "test_key"
    assert seen["prompt"] == "plan my exam"


@pytest.mark.asyncio
async def test_gemini_missing_key() -> None:
    provider = _gemini(lambda request: httpx.Response(200), api_key=None)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("x")

    assert exc_info.value.code == "missing_api_key"


@pytest.mark.asyncio
async def test_gemini_http_error_is_request_failed() -> None:
    provider = _gemini(lambda request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("x")

    assert exc_info.value.code == "request_failed"


@pytest.mark.asyncio
async def test_gemini_empty_candidates_is_empty_response() -> None:
    provider = _gemini(lambda request: httpx.Response(200, json={"candidates": []}))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("x")

    assert exc_info.value.code == "empty_response"


@pytest.mark.asyncio
async def test_gemini_stream_emits_deltas() -> None:
    frames = [_gemini_payload("Entropy "), _gemini_payload("increases.")]
    body = "".join(f"data: {json.dumps(frame)}\n\n" for frame in frames)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith(":streamGenerateContent")
        assert request.url.params["alt"] == "sse"
        return httpx.Response(200, content=body.encode())

    deltas: list[str] = []

    async def on_delta(text: str) -> None:
        deltas.append(text)

    text = await _gemini(handler).generate_stream("q", on_delta)

    assert deltas == ["Entropy ", "increases."]
    assert text == "Entropy increases."


@pytest.mark.asyncio
async def test_custom_provider_generate() -> None:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = '{"highPriority": ["Optics"]}'

    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(return_value=mock_response)

    provider = OpenAICompatibleProvider(_custom_config(), client=mock_openai_client)
    text = await provider.generate("prompt")

    assert text == '{"highPriority": ["Optics"]}'
    kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "my-model"
    assert kwargs["temperature"] == 0.2
    assert kwargs["messages"][0]["role"] == "system"


@pytest.mark.asyncio
async def test_custom_provider_empty_response() -> None:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = "   "

    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(return_value=mock_response)

    provider = OpenAICompatibleProvider(_custom_config(), client=mock_openai_client)

    with pytest.raises(ProviderError, match="Custom provider returned empty response"):
        await provider.generate("prompt")


@pytest.mark.asyncio
async def test_custom_provider_error_is_request_failed() -> None:
    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(side_effect=Exception("API error"))

    provider = OpenAICompatibleProvider(_custom_config(), client=mock_openai_client)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("prompt")

    assert exc_info.value.code == "request_failed"
    assert "Custom provider request failed: API error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_custom_provider_stream() -> None:
    def _chunk(content: str | None) -> MagicMock:
        chunk = MagicMock()
        chunk.choices = [MagicMock()]
        chunk.choices[0].delta.content = content
        return chunk

    async def fake_stream() -> AsyncIterator[MagicMock]:
        for content in ["Lens ", None, "formula"]:
            yield _chunk(content)

    mock_openai_client = AsyncMock()
    mock_openai_client.chat.completions.create = AsyncMock(return_value=fake_stream())

    deltas: list[str] = []

    async def on_delta(text: str) -> None:
        deltas.append(text)

    provider = OpenAICompatibleProvider(_custom_config(), client=mock_openai_client)
    text = await provider.generate_stream("q", on_delta)

    assert deltas == ["Lens ", "formula"]
    assert text == "Lens formula"
    assert mock_openai_client.chat.completions.create.call_args.kwargs["stream"] is True


@pytest.mark.asyncio
async def test_stub_provider_is_deterministic() -> None:
    provider = DeterministicStubProvider()

    first = await provider.generate("a")
    second = await provider.generate("b")

    assert first == second
    assert json.loads(first)["highPriority"]


def test_select_provider_without_key_returns_stub() -> None:
    provider = select_provider("primary", None, Settings(gemini_api_key=None))

    assert isinstance(provider, DeterministicStubProvider)


def test_select_provider_with_key_returns_gemini() -> None:
    settings = Settings(gemini_api_key=SecretStr("key"), gemini_model="gemini-x")

    provider = select_provider("primary", None, settings)

    assert isinstance(provider, GeminiProvider)
    assert provider.model == "gemini-x"


def test_custom_provider_requires_full_config() -> None:
    request = StrategyJobRequest(
        hours_left=4,
        model_type="custom",
        custom_model=CustomModelConfig(base_url="https://llm.test", model_name="m"),
    )

    with pytest.raises(RequestValidationError, match="Missing custom model configuration"):
        get_provider(request, Settings())


def test_model_label() -> None:
    settings = Settings(gemini_model="gemini-1.5-flash")
    custom = StrategyJobRequest(hours_left=4, model_type="custom", custom_model=_custom_config())

    assert model_label(custom, settings) == "my-model"
    assert model_label(StrategyJobRequest(hours_left=4), settings) == "gemini-1.5-flash"
