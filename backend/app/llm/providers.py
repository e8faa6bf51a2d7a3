"""Generation providers for strategy drafts and study answers.

Security: API keys come from settings or the request, never hardcoded.
Provides a deterministic stub when no primary key is configured.
"""

import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx
from openai import AsyncOpenAI

from backend.app.config import Settings, get_settings
from backend.app.errors import ProviderError, RequestValidationError
from backend.app.models.common import ModelType
from backend.app.models.jobs import CustomModelConfig, StrategyJobRequest
from backend.app.utils.metrics import PrometheusJobMetrics

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Awaitable[None]]

SYSTEM_PROMPT = (
    "You are a study strategy assistant. Return concise, practical exam preparation plans."
)


class GenerationProvider(Protocol):
    """Protocol for text generation providers."""

    name: str

    async def generate(self, prompt: str) -> str:
        """Generate a full completion.

        Args:
            prompt: User prompt

        Returns:
            Non-empty completion text

        Raises:
            ProviderError: On missing credentials, transport failure or empty output
        """
        ...

    async def generate_stream(self, prompt: str, on_delta: DeltaCallback) -> str:
        """Stream a completion, calling on_delta for each text fragment.

        Returns:
            The concatenated completion text
        """
        ...


def _record_latency(provider: str, started: float, outcome: str) -> None:
    PrometheusJobMetrics().record_provider_latency(
        provider, outcome, (time.perf_counter() - started) * 1000
    )


def _gemini_text(payload: dict) -> str:
    """Concatenate candidates[0].content.parts[].text."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiProvider:
    """Gemini generateContent API over httpx."""

    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        base_url: str,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            api_key: Gemini API key; None raises missing_api_key on first call
            model: Model name, e.g. gemini-1.5-flash
            base_url: API root including version segment
            timeout: Request timeout in seconds
            client: Optional httpx client (for testing)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProviderError("Missing Gemini API key.", code="missing_api_key")
        return self.api_key

    def _body(self, prompt: str) -> dict:
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.2},
        }

    async def generate(self, prompt: str) -> str:
        """Single generateContent call."""
        key = self._require_key()
        url = f"{self.base_url}/models/{self.model}:generateContent"
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        started = time.perf_counter()
        try:
            response = await client.post(url, params={"key": key}, json=self._body(prompt))
            response.raise_for_status()
            text = _gemini_text(response.json())
        except httpx.HTTPError as e:
            _record_latency(self.name, started, "error")
            logger.error(f"Gemini request failed: {e}")
            raise ProviderError(f"Gemini request failed: {e}", code="request_failed") from e
        except ValueError as e:
            _record_latency(self.name, started, "error")
            raise ProviderError(
                f"Gemini returned malformed JSON: {e}", code="request_failed"
            ) from e
        finally:
            if self._client is None:
                await client.aclose()

        if not text.strip():
            _record_latency(self.name, started, "empty")
            raise ProviderError("Gemini returned empty response", code="empty_response")
        _record_latency(self.name, started, "ok")
        return text

    async def generate_stream(self, prompt: str, on_delta: DeltaCallback) -> str:
        """streamGenerateContent with alt=sse; each data line is one JSON chunk."""
        key = self._require_key()
        url = f"{self.base_url}/models/{self.model}:streamGenerateContent"
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        started = time.perf_counter()
        pieces: list[str] = []
        try:
            async with client.stream(
                "POST", url, params={"alt": "sse", "key": key}, json=self._body(prompt)
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if not data:
                        continue
                    try:
                        delta = _gemini_text(json.loads(data))
                    except json.JSONDecodeError:
                        logger.warning("Skipping malformed Gemini stream frame")
                        continue
                    if delta:
                        pieces.append(delta)
                        await on_delta(delta)
        except httpx.HTTPError as e:
            _record_latency(self.name, started, "error")
            logger.error(f"Gemini stream failed: {e}")
            raise ProviderError(f"Gemini request failed: {e}", code="request_failed") from e
        finally:
            if self._client is None:
                await client.aclose()

        text = "".join(pieces)
        if not text.strip():
            _record_latency(self.name, started, "empty")
            raise ProviderError("Gemini returned empty response", code="empty_response")
        _record_latency(self.name, started, "ok")
        return text


class OpenAICompatibleProvider:
    """Any OpenAI-compatible chat completions endpoint."""

    name = "custom"

    def __init__(self, config: CustomModelConfig, client: AsyncOpenAI | None = None) -> None:
        """Initialize provider.

        Args:
            config: Endpoint, key and model name supplied with the request
            client: Optional preconfigured AsyncOpenAI (for testing)
        """
        self.model = config.model_name
        self.client = client or AsyncOpenAI(
            base_url=config.base_url, api_key=config.api_key.get_secret_value()
        )

    def _messages(self, prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def generate(self, prompt: str) -> str:
        """Non-streaming chat completion."""
        started = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=0.2,
            )
        except Exception as e:
            _record_latency(self.name, started, "error")
            logger.error(f"Custom provider call failed: {e}")
            raise ProviderError(
                f"Custom provider request failed: {e}", code="request_failed"
            ) from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            _record_latency(self.name, started, "empty")
            raise ProviderError("Custom provider returned empty response", code="empty_response")
        _record_latency(self.name, started, "ok")
        return text

    async def generate_stream(self, prompt: str, on_delta: DeltaCallback) -> str:
        """Streaming chat completion; deltas come from choices[0].delta.content."""
        started = time.perf_counter()
        pieces: list[str] = []
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=0.2,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    pieces.append(delta)
                    await on_delta(delta)
        except Exception as e:
            _record_latency(self.name, started, "error")
            logger.error(f"Custom provider stream failed: {e}")
            raise ProviderError(
                f"Custom provider request failed: {e}", code="request_failed"
            ) from e

        text = "".join(pieces)
        if not text.strip():
            _record_latency(self.name, started, "empty")
            raise ProviderError("Custom provider returned empty response", code="empty_response")
        _record_latency(self.name, started, "ok")
        return text


class DeterministicStubProvider:
    """Deterministic provider for tests and keyless development."""

    name = "stub"

    def __init__(self, response: str | None = None) -> None:
        self.response = response

    def _draft(self, prompt: str) -> str:
        if self.response is not None:
            return self.response
        return json.dumps(
            {
                "strategySummary": {"estimatedCoverage": "70%"},
                "highPriority": ["Core concepts review"],
                "mediumPriority": ["Practice problems"],
                "lowPriority": ["Optional reading"],
                "studyOrder": ["Core concepts review", "Practice problems", "Optional reading"],
                "reasoning": ["Stub strategy generated without a language model."],
            }
        )

    async def generate(self, prompt: str) -> str:
        return self._draft(prompt)

    async def generate_stream(self, prompt: str, on_delta: DeltaCallback) -> str:
        text = self._draft(prompt)
        for word in text.split(" "):
            await on_delta(word + " ")
        return text


def validate_custom_model(config: CustomModelConfig | None) -> CustomModelConfig:
    """Require base_url, api_key and model_name for custom providers.

    Raises:
        RequestValidationError: If any field is blank
    """
    if (
        config is None
        or not config.base_url.strip()
        or not config.api_key.get_secret_value().strip()
        or not config.model_name.strip()
    ):
        raise RequestValidationError("Missing custom model configuration")
    return config


def select_provider(
    model_type: ModelType,
    custom_model: CustomModelConfig | None = None,
    settings: Settings | None = None,
) -> GenerationProvider:
    """Factory selecting a provider by model type.

    Returns:
        OpenAICompatibleProvider for custom requests, GeminiProvider when a
        key is configured, DeterministicStubProvider otherwise

    Raises:
        RequestValidationError: If a custom model is incomplete
    """
    settings = settings or get_settings()
    if model_type == "custom":
        return OpenAICompatibleProvider(validate_custom_model(custom_model))

    api_key = settings.gemini_api_key
    if api_key and api_key.get_secret_value():
        logger.info(f"Using Gemini provider ({settings.gemini_model})")
        return GeminiProvider(
            api_key=api_key.get_secret_value(),
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.provider_timeout_seconds,
        )
    logger.warning("No Gemini API key configured, using deterministic stub provider")
    return DeterministicStubProvider()


def get_provider(
    request: StrategyJobRequest, settings: Settings | None = None
) -> GenerationProvider:
    """Provider for a strategy job request."""
    return select_provider(request.model_type, request.custom_model, settings)


def model_label(request: StrategyJobRequest, settings: Settings | None = None) -> str:
    """Model name recorded on the finished strategy."""
    if request.model_type == "custom" and request.custom_model:
        return request.custom_model.model_name
    return (settings or get_settings()).gemini_model
