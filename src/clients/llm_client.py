"""
LLM HTTP client handles and the factory that binds them.

A handle is bound to exactly one model or deployment. Switching models never
mutates a handle; the factory builds a new one from the updated settings.
Construction performs no network I/O.
"""

from __future__ import annotations

import logging
import time
from typing import Any, assert_never
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from src.chat.logging_utils import should_log_feature
from src.chat.models import (
    DEFAULT_OPENAI_BASE_URL,
    ChatCompletionMessage,
    CompletionResult,
    ProviderKind,
    ProviderSettings,
    TokenUsage,
)
from src.errors import ConfigurationError, ProviderRequestError

logger = logging.getLogger(__name__)

# Error bodies can be large HTML pages; keep log lines and messages bounded
_MAX_ERROR_BODY = 500


class ChatCompletionClient:
    """
    Request-capable handle bound to one model/deployment.

    Wraps an ``httpx.AsyncClient`` configured for one provider dialect and
    issues exactly one POST per ``complete`` call.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        provider: ProviderKind,
        model: str,
        path: str,
        params: dict[str, str] | None = None,
        send_model: bool = True,
    ) -> None:
        self._http = http_client
        self._provider = provider
        self._model = model
        self._path = path
        self._params = params or {}
        self._send_model = send_model
        self._closed = False

    @property
    def model(self) -> str:
        """Model or deployment this handle is bound to."""
        return self._model

    @property
    def provider(self) -> ProviderKind:
        return self._provider

    @property
    def closed(self) -> bool:
        return self._closed

    def _build_payload(
        self,
        messages: list[ChatCompletionMessage],
        temperature: float | None,
        max_tokens: int | None,
        json_mode: bool,
    ) -> dict[str, Any]:
        """Build the request body, omitting parameters that were not supplied."""
        payload: dict[str, Any] = {
            "messages": [msg.model_dump() for msg in messages],
        }
        # Managed deployments carry the model in the URL
        if self._send_model:
            payload["model"] = self._model
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def complete(
        self,
        messages: list[ChatCompletionMessage],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
        timeout: float | None = None,
    ) -> CompletionResult:
        """
        Send one chat completion request.

        Args:
            messages: Ordered request messages
            temperature: Sampling temperature, omitted when None
            max_tokens: Output token cap, omitted when None
            json_mode: Ask the API to constrain the reply to a JSON object
            timeout: Per-request timeout in seconds, client default when None

        Raises:
            ProviderRequestError: transport failure, non-2xx status or a body
                that is not a chat completion
        """
        if self._closed:
            raise ProviderRequestError("LLM client is closed", model=self._model)

        payload = self._build_payload(messages, temperature, max_tokens, json_mode)
        request_timeout: Any = timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT

        start_time = time.monotonic()
        try:
            response = await self._http.post(
                self._path,
                params=self._params,
                json=payload,
                timeout=request_timeout,
            )
            duration_ms = (time.monotonic() - start_time) * 1000
            self._log_http_request("POST", self._path, response.status_code, duration_ms)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:_MAX_ERROR_BODY]
            raise ProviderRequestError(
                f"LLM API returned HTTP {status}: {body}",
                status_code=status,
                model=self._model,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"HTTP error: {e!s}", model=self._model) from e

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderRequestError(
                f"Invalid JSON in API response: {e!s}",
                status_code=response.status_code,
                model=self._model,
            ) from e

        return self._parse_completion(result)

    def _parse_completion(self, result: Any) -> CompletionResult:
        """Convert a chat completion body into a CompletionResult."""
        if not isinstance(result, dict) or not result.get("choices"):
            raise ProviderRequestError("No choices in API response", model=self._model)

        try:
            choice = result["choices"][0]
            content = choice["message"].get("content")
            usage_data = result.get("usage")
            usage = TokenUsage.model_validate(usage_data) if isinstance(usage_data, dict) else None
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderRequestError(
                f"Unexpected response format: {e!s}", model=self._model
            ) from e

        if isinstance(content, list):
            # Some compatible endpoints return content parts
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )

        return CompletionResult(
            text=content or "",
            model=result.get("model") or self._model,
            usage=usage,
            finish_reason=choice.get("finish_reason"),
        )

    def _log_http_request(
        self,
        method: str,
        url: str,
        status_code: int | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log HTTP request details if logging is enabled."""
        if not should_log_feature("clients", "http_requests"):
            return

        message_parts = [f"🔌 HTTP {method} {url}"]
        if status_code is not None:
            message_parts.append(f"Status: {status_code}")
        if duration_ms is not None:
            message_parts.append(f"Duration: {duration_ms:.2f}ms")

        logger.info(" | ".join(message_parts))

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._closed:
            return
        self._closed = True
        await self._http.aclose()

    async def __aenter__(self) -> ChatCompletionClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()


class ChatClientFactory:
    """
    Builds a ChatCompletionClient bound to the model named in the settings.

    Args:
        transport: Optional httpx transport, used by tests to stand in for
            the remote API
        http2: Negotiate HTTP/2 when the default transport is used
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        http2: bool = True,
    ) -> None:
        self._transport = transport
        self._http2 = http2

    def create(self, settings: ProviderSettings) -> ChatCompletionClient:
        """
        Create a handle for ``settings.model``.

        Raises:
            ConfigurationError: API key missing, or endpoint missing for a
                managed deployment
        """
        api_key = settings.api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError("Missing llm.api_key in configuration.")
        if not settings.model:
            raise ConfigurationError("Missing llm.model in configuration.")

        if settings.provider is ProviderKind.MANAGED_DEPLOYMENT:
            client = self._create_managed(settings, api_key)
        elif settings.provider is ProviderKind.GENERIC_COMPATIBLE:
            client = self._create_generic(settings, api_key)
        else:
            assert_never(settings.provider)

        logger.info(
            "LLM client created: provider=%s, model=%s",
            settings.provider.value,
            settings.model,
        )
        return client

    def _http_client(
        self, base_url: str, headers: dict[str, str], settings: ProviderSettings
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url,
            headers={**headers, "Content-Type": "application/json"},
            timeout=settings.request_timeout_seconds,
            http2=self._http2,
            transport=self._transport,
            trust_env=False,
        )

    def _create_managed(self, settings: ProviderSettings, api_key: str) -> ChatCompletionClient:
        if not settings.endpoint:
            raise ConfigurationError("Missing llm.endpoint for Azure OpenAI.")

        http_client = self._http_client(
            settings.endpoint.rstrip("/"), {"api-key": api_key}, settings
        )
        return ChatCompletionClient(
            http_client,
            provider=settings.provider,
            model=settings.model,
            path=f"/openai/deployments/{quote(settings.model, safe='')}/chat/completions",
            params={"api-version": settings.api_version},
            send_model=False,
        )

    def _create_generic(self, settings: ProviderSettings, api_key: str) -> ChatCompletionClient:
        base_url = (settings.endpoint or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        http_client = self._http_client(
            base_url, {"Authorization": f"Bearer {api_key}"}, settings
        )
        return ChatCompletionClient(
            http_client,
            provider=settings.provider,
            model=settings.model,
            path="/chat/completions",
            send_model=True,
        )
