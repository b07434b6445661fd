"""adapters.openai_compatible

Shared implementation for every backend speaking the OpenAI **Chat
Completions** wire shape: OpenAI itself, local servers (LM Studio, Ollama)
and gateways (Groq, OpenRouter).

Subclasses customise the request through :meth:`_enhance_request_body` and,
where needed, headers, model discovery and the connection test.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llm_relay.core.abc import BaseProvider
from llm_relay.core.exceptions import LLMRelayError, MalformedResponseError
from llm_relay.core.types import GenerationOptions, GenerationResponse, Message, ModelInfo, Usage

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire models (decode step)
# ---------------------------------------------------------------------------


class _ContentPart(BaseModel):
    type: str = 'text'
    text: str | None = None


class _ChatMessage(BaseModel):
    content: str | list[_ContentPart] | None = None

    def flattened(self) -> str:
        if self.content is None:
            return ''
        if isinstance(self.content, str):
            return self.content
        return ''.join(part.text or '' for part in self.content if part.type == 'text')


class _Choice(BaseModel):
    message: _ChatMessage
    finish_reason: str | None = None


class _CompletionUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class _ChatCompletion(BaseModel):
    model: str | None = None
    choices: list[_Choice] = Field(min_length=1)
    usage: _CompletionUsage | None = None


class _RemoteModel(BaseModel):
    id: str
    name: str | None = None
    context_window: int | None = None
    context_length: int | None = None
    pricing: dict[str, Any] | None = None

    model_config = ConfigDict(extra='ignore')


# ---------------------------------------------------------------------------
# Adapter base
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider(BaseProvider):
    """Base class for providers using the chat-completions API."""

    completions_path: ClassVar[str] = '/chat/completions'
    models_path: ClassVar[str] = '/models'

    def requires_base_url(self) -> bool:
        return True

    def supports_streaming(self) -> bool:
        return True

    @property
    def completions_url(self) -> str:
        return f'{self.base_url}{self.completions_path}'

    @property
    def models_url(self) -> str:
        return f'{self.base_url}{self.models_path}'

    def _headers(self) -> dict[str, str]:
        headers = self._default_headers()
        api_key = self.get_api_key()
        if api_key:
            headers['Authorization'] = f'Bearer {api_key}'
        return headers

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def _build_request_body(self, messages: Sequence[Message], options: GenerationOptions) -> dict[str, Any]:
        body: dict[str, Any] = {
            'model': self.config.model,
            'messages': self.format_messages(messages),
            'max_tokens': self._max_tokens(options),
            'temperature': self._temperature(options),
        }

        if options.stop:
            body['stop'] = options.stop
        if options.top_p is not None:
            body['top_p'] = options.top_p
        if options.frequency_penalty is not None:
            body['frequency_penalty'] = options.frequency_penalty
        if options.presence_penalty is not None:
            body['presence_penalty'] = options.presence_penalty
        if options.stream:
            body['stream'] = True

        return self._enhance_request_body(body, options)

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:  # noqa: ARG002
        """Hook for vendor-only fields. Default: unchanged."""
        return body

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def _parse_completion_response(self, data: Any) -> GenerationResponse:
        try:
            completion = _ChatCompletion.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError('Invalid response format: missing choices or message') from exc

        choice = completion.choices[0]
        usage = None
        if completion.usage is not None:
            usage = Usage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )
        return GenerationResponse(
            content=choice.message.flattened(),
            model=completion.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def _invoke(self, messages: list[Message], options: GenerationOptions) -> GenerationResponse:
        body = self._build_request_body(messages, options)
        data = await self._send_checked('POST', self.completions_url, headers=self._headers(), json=body)
        return self._parse_completion_response(data)

    # ------------------------------------------------------------------
    # Model discovery
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_model_list(data: Any) -> list[_RemoteModel]:
        # OpenAI format wraps the list as {"data": [...]}
        items = data.get('data', []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise MalformedResponseError('Invalid model list format')
        try:
            return [_RemoteModel.model_validate(item) for item in items]
        except ValidationError as exc:
            raise MalformedResponseError('Invalid model list format') from exc

    async def _list_models(self) -> list[ModelInfo]:
        """Query ``GET {base}/models``. Raises on any failure."""
        data = await self._send_checked('GET', self.models_url, headers=self._headers())
        return [
            ModelInfo(
                id=remote.id,
                name=remote.name or remote.id,
                context_window=remote.context_window or remote.context_length,
                pricing=remote.pricing,
            )
            for remote in self._parse_model_list(data)
        ]

    async def fetch_available_models(self) -> list[ModelInfo]:
        """Live catalog. Returns ``[]`` when the backend cannot be queried."""
        try:
            return await self._list_models()
        except LLMRelayError as exc:
            logger.warning('[%s] Failed to fetch models: %s', self.name, exc)
            return []
