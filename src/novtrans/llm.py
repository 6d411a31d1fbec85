from __future__ import annotations

import json
import logging
import math
import urllib.parse
from dataclasses import dataclass
from typing import Any, ClassVar, Iterable, Iterator, Protocol

from .credentials import CredentialStore, EnvCredentialStore, key_identifier_for
from .errors import (
    ApiError,
    ApiKeyMissingError,
    InvalidURLError,
    LLMServiceError,
    NoResponseTextError,
    ResponseDecodingError,
    ServiceNotImplementedError,
    TokenCountError,
)
from .glossary import parse_glossary_response
from .models import (
    GlossaryEntry,
    Provider,
    ProviderConfig,
    StreamingChunk,
    TranslationRequest,
    TranslationResponse,
)
from .streaming import ChunkStream
from .transport import iter_lines, iter_ndjson, iter_sse_data, join_url, open_stream, request_json

logger = logging.getLogger("novtrans.llm")

ANTHROPIC_VERSION = "2023-06-01"
OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434"

GEMINI_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class LLMClient(Protocol):
    provider: Provider

    def translate(self, request: TranslationRequest) -> TranslationResponse: ...

    def stream_translate(self, request: TranslationRequest) -> ChunkStream: ...

    def count_tokens(self, text: str, model: str) -> int: ...

    def extract_glossary(self, prompt: str, model: str, config: ProviderConfig | None = None) -> list[GlossaryEntry]: ...

    def fetch_available_models(self) -> list[str]: ...


def estimate_tokens(text: str) -> int:
    """Local token estimate: roughly 4 tokens per 3 words."""
    words = len(text.split())
    return math.ceil(words * 4 / 3)


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode_event(data: str, provider: str) -> dict[str, Any] | None:
    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed %s stream event: %.200s", provider, data)
        return None
    if not isinstance(event, dict):
        logger.warning("Skipping non-object %s stream event: %.200s", provider, data)
        return None
    return event


def _event_error(event: dict[str, Any]) -> str | None:
    err = event.get("error")
    if err is None:
        return None
    if isinstance(err, dict):
        return str(err.get("message") or err.get("type") or err)
    return str(err)


# Stream parsers. Each turns decoded lines of one provider's framing into
# StreamingChunks and ends with exactly one final chunk when the provider
# signals completion. Returning without a final chunk means the connection
# closed early; ChunkStream closes such streams itself.


def parse_openai_stream(lines: Iterable[str]) -> Iterator[StreamingChunk]:
    pending_finish: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    for data in iter_sse_data(lines):
        if data.strip() == "[DONE]":
            yield StreamingChunk(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                finish_reason=pending_finish or "stop",
                is_final=True,
            )
            return
        event = _decode_event(data, "openai")
        if event is None:
            continue
        message = _event_error(event)
        if message is not None:
            raise ApiError(-1, message)

        usage = event.get("usage")
        if isinstance(usage, dict):
            input_tokens = _opt_int(usage.get("prompt_tokens"))
            output_tokens = _opt_int(usage.get("completion_tokens"))

        choices = event.get("choices") or []
        choice = choices[0] if choices and isinstance(choices[0], dict) else {}
        delta = choice.get("delta") or {}
        text = delta.get("content") if isinstance(delta, dict) else None
        if text:
            yield StreamingChunk(text=str(text))
        if choice.get("finish_reason"):
            pending_finish = str(choice["finish_reason"])

        # The usage event arrives after the finish reason when usage was requested.
        if pending_finish and isinstance(usage, dict):
            yield StreamingChunk(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                finish_reason=pending_finish,
                is_final=True,
            )
            return

    if pending_finish:
        yield StreamingChunk(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=pending_finish,
            is_final=True,
        )


def parse_anthropic_stream(lines: Iterable[str]) -> Iterator[StreamingChunk]:
    input_tokens: int | None = None
    output_tokens: int | None = None
    stop_reason: str | None = None
    for data in iter_sse_data(lines):
        event = _decode_event(data, "anthropic")
        if event is None:
            continue
        kind = event.get("type")
        if kind == "error":
            raise ApiError(-1, _event_error(event) or "stream error")
        if kind == "message_start":
            usage = (event.get("message") or {}).get("usage") or {}
            input_tokens = _opt_int(usage.get("input_tokens"))
            output_tokens = _opt_int(usage.get("output_tokens"))
        elif kind == "content_block_delta":
            delta = event.get("delta") or {}
            text = delta.get("text")
            if text:
                yield StreamingChunk(text=str(text))
        elif kind == "message_delta":
            delta = event.get("delta") or {}
            if delta.get("stop_reason"):
                stop_reason = str(delta["stop_reason"])
            usage = event.get("usage") or {}
            if usage.get("output_tokens") is not None:
                output_tokens = _opt_int(usage.get("output_tokens"))
        elif kind == "message_stop":
            yield StreamingChunk(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                finish_reason=stop_reason or "end_turn",
                is_final=True,
            )
            return


def _gemini_text(event: dict[str, Any]) -> tuple[str, str | None]:
    candidates = event.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        feedback = event.get("promptFeedback") or {}
        return "", (str(feedback["blockReason"]) if feedback.get("blockReason") else None)
    candidate = candidates[0]
    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
    finish = candidate.get("finishReason")
    return text, (str(finish) if finish else None)


def parse_gemini_stream(lines: Iterable[str]) -> Iterator[StreamingChunk]:
    input_tokens: int | None = None
    output_tokens: int | None = None
    for data in iter_sse_data(lines):
        event = _decode_event(data, "gemini")
        if event is None:
            continue
        message = _event_error(event)
        if message is not None:
            raise ApiError(-1, message)
        usage = event.get("usageMetadata")
        if isinstance(usage, dict):
            input_tokens = _opt_int(usage.get("promptTokenCount"))
            output_tokens = _opt_int(usage.get("candidatesTokenCount"))
        text, finish = _gemini_text(event)
        if finish:
            yield StreamingChunk(
                text=text,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                finish_reason=finish,
                is_final=True,
            )
            return
        if text:
            yield StreamingChunk(text=text)


def parse_ollama_stream(lines: Iterable[str]) -> Iterator[StreamingChunk]:
    for data in iter_ndjson(lines):
        event = _decode_event(data, "ollama")
        if event is None:
            continue
        message = _event_error(event)
        if message is not None:
            raise ApiError(-1, message)
        text = str((event.get("message") or {}).get("content") or "")
        if event.get("done") is True:
            yield StreamingChunk(
                text=text,
                input_tokens=_opt_int(event.get("prompt_eval_count")),
                output_tokens=_opt_int(event.get("eval_count")),
                finish_reason=str(event.get("done_reason") or "stop"),
                is_final=True,
            )
            return
        if text:
            yield StreamingChunk(text=text)


@dataclass(frozen=True)
class _HTTPClient:
    """Shared request plumbing. Subclasses describe endpoints, payloads and parsing."""

    api_key: str | None = None
    base_url: str = ""
    timeout_s: float = 120.0

    provider: ClassVar[Provider]
    requires_api_key: ClassVar[bool] = True

    def _headers(self) -> dict[str, str]:
        if self.requires_api_key and not self.api_key:
            raise ApiKeyMissingError(self.provider.value)
        return {}

    def _url(self, path: str) -> str:
        return join_url(self.base_url, path)

    def _payload(self, request: TranslationRequest, *, stream: bool, json_mode: bool) -> dict[str, Any]:
        raise NotImplementedError

    def _endpoint(self, request: TranslationRequest, *, stream: bool) -> str:
        raise NotImplementedError

    def _parse_response(self, data: Any, model: str) -> TranslationResponse:
        raise NotImplementedError

    def _parse_stream(self, lines: Iterable[str]) -> Iterator[StreamingChunk]:
        raise NotImplementedError

    def _complete(self, request: TranslationRequest, *, json_mode: bool = False) -> TranslationResponse:
        url = self._url(self._endpoint(request, stream=False))
        data = request_json(
            url,
            self._payload(request, stream=False, json_mode=json_mode),
            headers=self._headers(),
            timeout_s=self.timeout_s,
        )
        response = self._parse_response(data, request.model)
        if not response.text:
            raise NoResponseTextError(self.provider.value)
        return response

    def translate(self, request: TranslationRequest) -> TranslationResponse:
        return self._complete(request)

    def stream_translate(self, request: TranslationRequest) -> ChunkStream:
        url = self._url(self._endpoint(request, stream=True))
        payload = self._payload(request, stream=True, json_mode=False)
        headers = self._headers()
        timeout_s = self.timeout_s
        parse = self._parse_stream

        def produce() -> Iterator[StreamingChunk]:
            with open_stream(url, payload, headers=headers, timeout_s=timeout_s) as resp:
                yield from parse(iter_lines(resp))

        return ChunkStream(produce, name=f"novtrans-{self.provider.value}-stream")

    def count_tokens(self, text: str, model: str) -> int:
        return estimate_tokens(text)

    def extract_glossary(self, prompt: str, model: str, config: ProviderConfig | None = None) -> list[GlossaryEntry]:
        request = TranslationRequest(prompt=prompt, model=model, config=config or ProviderConfig(provider=self.provider))
        return parse_glossary_response(self._complete(request, json_mode=True).text)

    def fetch_available_models(self) -> list[str]:
        raise ServiceNotImplementedError("fetch_available_models", self.provider.value)


@dataclass(frozen=True)
class OpenAIChatClient(_HTTPClient):
    """OpenAI Chat Completions over SSE. Key via OPENAI_API_KEY by default."""

    base_url: str = "https://api.openai.com/v1"
    include_stream_usage: bool = True
    extra_headers: tuple[tuple[str, str], ...] = ()

    provider: ClassVar[Provider] = Provider.OPENAI

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers.update(dict(self.extra_headers))
        return headers

    def _endpoint(self, request: TranslationRequest, *, stream: bool) -> str:
        return "chat/completions"

    def _payload(self, request: TranslationRequest, *, stream: bool, json_mode: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.config.temperature,
            "max_tokens": request.config.max_tokens,
            "stream": stream,
        }
        if stream and self.include_stream_usage:
            payload["stream_options"] = {"include_usage": True}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def _parse_response(self, data: Any, model: str) -> TranslationResponse:
        try:
            choice = data["choices"][0]
            content = choice["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ResponseDecodingError(f"Unexpected {self.provider.value} response schema: {data}") from e
        usage = data.get("usage") or {}
        return TranslationResponse(
            text=str(content or ""),
            input_tokens=_opt_int(usage.get("prompt_tokens")),
            output_tokens=_opt_int(usage.get("completion_tokens")),
            model_used=str(data.get("model") or model),
            finish_reason=choice.get("finish_reason"),
        )

    def _parse_stream(self, lines: Iterable[str]) -> Iterator[StreamingChunk]:
        return parse_openai_stream(lines)

    def _keep_model(self, model_id: str) -> bool:
        return "gpt-" in model_id and "vision" not in model_id

    def fetch_available_models(self) -> list[str]:
        data = request_json(self._url("models"), headers=self._headers(), timeout_s=self.timeout_s)
        try:
            ids = [str(item["id"]) for item in data["data"]]
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError(f"Unexpected model list schema: {data}") from e
        return sorted(i for i in ids if self._keep_model(i))


@dataclass(frozen=True)
class DeepSeekChatClient(OpenAIChatClient):
    base_url: str = "https://api.deepseek.com/v1"

    provider: ClassVar[Provider] = Provider.DEEPSEEK

    def _keep_model(self, model_id: str) -> bool:
        return True


@dataclass(frozen=True)
class OpenRouterChatClient(OpenAIChatClient):
    base_url: str = "https://openrouter.ai/api/v1"

    provider: ClassVar[Provider] = Provider.OPENROUTER

    def _keep_model(self, model_id: str) -> bool:
        return True


@dataclass(frozen=True)
class CustomOpenAIChatClient(OpenAIChatClient):
    """Any server speaking the OpenAI chat protocol; the key is optional."""

    include_stream_usage: bool = False

    provider: ClassVar[Provider] = Provider.CUSTOM
    requires_api_key: ClassVar[bool] = False

    def _keep_model(self, model_id: str) -> bool:
        return True


@dataclass(frozen=True)
class AnthropicMessagesClient(_HTTPClient):
    base_url: str = "https://api.anthropic.com/v1"

    provider: ClassVar[Provider] = Provider.ANTHROPIC

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-api-key"] = str(self.api_key)
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return headers

    def _endpoint(self, request: TranslationRequest, *, stream: bool) -> str:
        return "messages"

    def _payload(self, request: TranslationRequest, *, stream: bool, json_mode: bool) -> dict[str, Any]:
        return {
            "model": request.model,
            "max_tokens": request.config.max_tokens,
            "temperature": request.config.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
            "stream": stream,
        }

    def _parse_response(self, data: Any, model: str) -> TranslationResponse:
        try:
            blocks = data["content"]
            text = "".join(str(b.get("text", "")) for b in blocks if b.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise ResponseDecodingError(f"Unexpected anthropic response schema: {data}") from e
        usage = data.get("usage") or {}
        return TranslationResponse(
            text=text,
            input_tokens=_opt_int(usage.get("input_tokens")),
            output_tokens=_opt_int(usage.get("output_tokens")),
            model_used=str(data.get("model") or model),
            finish_reason=data.get("stop_reason"),
        )

    def _parse_stream(self, lines: Iterable[str]) -> Iterator[StreamingChunk]:
        return parse_anthropic_stream(lines)

    def count_tokens(self, text: str, model: str) -> int:
        payload = {"model": model, "messages": [{"role": "user", "content": text}]}
        try:
            data = request_json(
                self._url("messages/count_tokens"), payload, headers=self._headers(), timeout_s=self.timeout_s
            )
            return int(data["input_tokens"])
        except (LLMServiceError, KeyError, TypeError, ValueError) as e:
            raise TokenCountError(f"anthropic token count failed: {e}") from e

    def fetch_available_models(self) -> list[str]:
        data = request_json(self._url("models"), headers=self._headers(), timeout_s=self.timeout_s)
        try:
            return sorted(str(item["id"]) for item in data["data"])
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError(f"Unexpected model list schema: {data}") from e


def _gemini_model_path(model: str) -> str:
    name = model.strip()
    if name.startswith("models/"):
        name = name[len("models/") :]
    return "models/" + urllib.parse.quote(name, safe="-._")


@dataclass(frozen=True)
class GeminiClient(_HTTPClient):
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    provider: ClassVar[Provider] = Provider.GOOGLE

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-goog-api-key"] = str(self.api_key)
        return headers

    def _endpoint(self, request: TranslationRequest, *, stream: bool) -> str:
        model_path = _gemini_model_path(request.model)
        if stream:
            return f"{model_path}:streamGenerateContent?alt=sse"
        return f"{model_path}:generateContent"

    def _payload(self, request: TranslationRequest, *, stream: bool, json_mode: bool) -> dict[str, Any]:
        generation: dict[str, Any] = {
            "temperature": request.config.temperature,
            "maxOutputTokens": request.config.max_tokens,
        }
        if json_mode:
            generation["responseMimeType"] = "application/json"
        return {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation,
            "safetySettings": [{"category": c, "threshold": "BLOCK_NONE"} for c in GEMINI_SAFETY_CATEGORIES],
        }

    def _parse_response(self, data: Any, model: str) -> TranslationResponse:
        if not isinstance(data, dict):
            raise ResponseDecodingError(f"Unexpected gemini response schema: {data}")
        text, finish = _gemini_text(data)
        usage = data.get("usageMetadata") or {}
        return TranslationResponse(
            text=text,
            input_tokens=_opt_int(usage.get("promptTokenCount")),
            output_tokens=_opt_int(usage.get("candidatesTokenCount")),
            model_used=str(data.get("modelVersion") or model),
            finish_reason=finish,
        )

    def _parse_stream(self, lines: Iterable[str]) -> Iterator[StreamingChunk]:
        return parse_gemini_stream(lines)

    def count_tokens(self, text: str, model: str) -> int:
        payload = {"contents": [{"role": "user", "parts": [{"text": text}]}]}
        try:
            data = request_json(
                self._url(f"{_gemini_model_path(model)}:countTokens"),
                payload,
                headers=self._headers(),
                timeout_s=self.timeout_s,
            )
            return int(data["totalTokens"])
        except (LLMServiceError, KeyError, TypeError, ValueError) as e:
            raise TokenCountError(f"gemini token count failed: {e}") from e

    def fetch_available_models(self) -> list[str]:
        data = request_json(self._url("models"), headers=self._headers(), timeout_s=self.timeout_s)
        try:
            models = data["models"]
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError(f"Unexpected model list schema: {data}") from e
        names: list[str] = []
        for item in models:
            if "generateContent" not in (item.get("supportedGenerationMethods") or []):
                continue
            name = str(item.get("name", ""))
            names.append(name[len("models/") :] if name.startswith("models/") else name)
        return sorted(n for n in names if n)


@dataclass(frozen=True)
class OllamaChatClient(_HTTPClient):
    """Local Ollama chat client; streams NDJSON."""

    base_url: str = OLLAMA_DEFAULT_BASE_URL

    provider: ClassVar[Provider] = Provider.OLLAMA
    requires_api_key: ClassVar[bool] = False

    def _endpoint(self, request: TranslationRequest, *, stream: bool) -> str:
        return "api/chat"

    def _payload(self, request: TranslationRequest, *, stream: bool, json_mode: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "stream": stream,
            "messages": [{"role": "user", "content": request.prompt}],
            "options": {"temperature": request.config.temperature, "num_predict": request.config.max_tokens},
        }
        if json_mode:
            payload["format"] = "json"
        return payload

    def _parse_response(self, data: Any, model: str) -> TranslationResponse:
        try:
            content = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError(f"Unexpected ollama response schema: {data}") from e
        return TranslationResponse(
            text=str(content or ""),
            input_tokens=_opt_int(data.get("prompt_eval_count")),
            output_tokens=_opt_int(data.get("eval_count")),
            model_used=str(data.get("model") or model),
            finish_reason=data.get("done_reason"),
        )

    def _parse_stream(self, lines: Iterable[str]) -> Iterator[StreamingChunk]:
        return parse_ollama_stream(lines)

    def fetch_available_models(self) -> list[str]:
        data = request_json(self._url("api/tags"), timeout_s=self.timeout_s)
        try:
            return sorted(str(item["name"]) for item in data["models"])
        except (KeyError, TypeError) as e:
            raise ResponseDecodingError(f"Unexpected model list schema: {data}") from e


_TEXT_START = "--- TEXT TO TRANSLATE START ---\n"
_TEXT_END = "\n--- TEXT TO TRANSLATE END ---"


@dataclass(frozen=True)
class MockLLMClient:
    """Deterministic offline client: echoes the text section of the prompt."""

    reply: str | None = None
    models: tuple[str, ...] = ()

    provider: ClassVar[Provider] = Provider.MOCK

    def _answer(self, prompt: str) -> str:
        if self.reply is not None:
            return self.reply
        start = prompt.find(_TEXT_START)
        end = prompt.rfind(_TEXT_END)
        if start != -1 and end > start:
            return prompt[start + len(_TEXT_START) : end]
        return prompt

    def translate(self, request: TranslationRequest) -> TranslationResponse:
        text = self._answer(request.prompt)
        return TranslationResponse(
            text=text,
            input_tokens=estimate_tokens(request.prompt),
            output_tokens=estimate_tokens(text),
            model_used=request.model,
            finish_reason="stop",
        )

    def stream_translate(self, request: TranslationRequest) -> ChunkStream:
        response = self.translate(request)

        def produce() -> Iterator[StreamingChunk]:
            for line in response.text.splitlines(keepends=True):
                yield StreamingChunk(text=line)
            yield StreamingChunk(
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                finish_reason=response.finish_reason,
                is_final=True,
            )

        return ChunkStream(produce, name="novtrans-mock-stream")

    def count_tokens(self, text: str, model: str) -> int:
        return estimate_tokens(text)

    def extract_glossary(self, prompt: str, model: str, config: ProviderConfig | None = None) -> list[GlossaryEntry]:
        raise ServiceNotImplementedError("extract_glossary", self.provider.value)

    def fetch_available_models(self) -> list[str]:
        if not self.models:
            raise ServiceNotImplementedError("fetch_available_models", self.provider.value)
        return list(self.models)


def _custom_v1_base(base_url: str) -> str:
    base = base_url.strip().rstrip("/")
    return base if base.endswith("/v1") else f"{base}/v1"


def build_llm_client(config: ProviderConfig, credentials: CredentialStore | None = None) -> LLMClient:
    """Create the client for `config.provider`, resolving secrets through `credentials`."""
    store = credentials if credentials is not None else EnvCredentialStore()
    provider = Provider(config.provider)
    key_id = key_identifier_for(provider, config.api_key_identifier)
    api_key = store.get(key_id) if key_id else None
    timeout_s = float(config.timeout_s)

    def _require_key() -> str:
        if not api_key:
            raise ApiKeyMissingError(provider.value)
        return api_key

    if provider == Provider.MOCK:
        return MockLLMClient()
    if provider == Provider.OPENAI:
        return OpenAIChatClient(
            api_key=_require_key(),
            base_url=config.base_url or OpenAIChatClient.base_url,
            timeout_s=timeout_s,
        )
    if provider == Provider.DEEPSEEK:
        return DeepSeekChatClient(
            api_key=_require_key(),
            base_url=config.base_url or DeepSeekChatClient.base_url,
            timeout_s=timeout_s,
        )
    if provider == Provider.OPENROUTER:
        attribution: list[tuple[str, str]] = []
        if config.site_url:
            attribution.append(("HTTP-Referer", config.site_url))
        if config.app_name:
            attribution.append(("X-Title", config.app_name))
        return OpenRouterChatClient(
            api_key=_require_key(),
            base_url=config.base_url or OpenRouterChatClient.base_url,
            timeout_s=timeout_s,
            extra_headers=tuple(attribution),
        )
    if provider == Provider.CUSTOM:
        base_url = config.base_url or store.get("CUSTOM_LLM_BASE_URL")
        if not base_url:
            raise InvalidURLError("")
        return CustomOpenAIChatClient(api_key=api_key, base_url=_custom_v1_base(base_url), timeout_s=timeout_s)
    if provider == Provider.ANTHROPIC:
        return AnthropicMessagesClient(
            api_key=_require_key(),
            base_url=config.base_url or AnthropicMessagesClient.base_url,
            timeout_s=timeout_s,
        )
    if provider == Provider.GOOGLE:
        return GeminiClient(
            api_key=_require_key(),
            base_url=config.base_url or GeminiClient.base_url,
            timeout_s=timeout_s,
        )
    if provider == Provider.OLLAMA:
        return OllamaChatClient(
            base_url=config.base_url or store.get("OLLAMA_BASE_URL") or OLLAMA_DEFAULT_BASE_URL,
            timeout_s=timeout_s,
        )
    raise ValueError(f"Unknown LLM provider: {config.provider}")
