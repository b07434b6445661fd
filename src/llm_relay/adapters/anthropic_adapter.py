"""adapters.anthropic_adapter

Adapter for the native Anthropic **Messages** API.

Anthropic takes the system prompt as a top-level field and requires the
conversation to open with a ``user`` turn and to alternate strictly; the
shared :func:`~llm_relay.core.formatting.alternate_turns` algorithm takes care
of both. Responses arrive as a list of typed content blocks and are flattened
to a single string.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from llm_relay.core.abc import BaseProvider
from llm_relay.core.exceptions import MalformedResponseError, ServerError
from llm_relay.core.formatting import alternate_turns
from llm_relay.core.transport import error_field
from llm_relay.core.types import GenerationResponse, ModelInfo, ProviderInfo, Usage
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from llm_relay.core.exceptions import ProviderAPIError
    from llm_relay.core.types import GenerationOptions, Message

ANTHROPIC_VERSION = '2023-06-01'

CLAUDE_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='claude-opus-4-20250514', name='Claude Opus 4', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-sonnet-4-20250514', name='Claude Sonnet 4', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-3-5-sonnet-20241022', name='Claude 3.5 Sonnet', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-3-5-haiku-20241022', name='Claude 3.5 Haiku', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-3-opus-20240229', name='Claude 3 Opus', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-3-sonnet-20240229', name='Claude 3 Sonnet', context_window=200000, supports_streaming=True),
    ModelInfo(id='claude-3-haiku-20240307', name='Claude 3 Haiku', context_window=200000, supports_streaming=True),
)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class _ContentBlock(BaseModel):
    type: str
    text: str | None = None


class _MessageUsage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None


class _MessagesResponse(BaseModel):
    model: str | None = None
    content: list[_ContentBlock] = []
    stop_reason: str | None = None
    usage: _MessageUsage | None = None


# ---------------------------------------------------------------------------
# Adapter implementation
# ---------------------------------------------------------------------------


class ClaudeProvider(BaseProvider):
    """Anthropic Claude API provider."""

    api_key_env = ('ANTHROPIC_API_KEY',)
    missing_api_key_message = 'Anthropic API key is required'
    default_config = {
        'base_url': 'https://api.anthropic.com',
        'model': 'claude-sonnet-4-20250514',
        'max_tokens': 4096,
    }

    @property
    def name(self) -> str:
        return 'claude'

    @property
    def display_name(self) -> str:
        return 'Anthropic Claude'

    def supports_streaming(self) -> bool:
        return True

    def get_available_models(self) -> list[ModelInfo]:
        return list(CLAUDE_MODELS)

    def _headers(self) -> dict[str, str]:
        headers = self._default_headers()
        api_key = self.get_api_key()
        if api_key:
            headers['x-api-key'] = api_key
        headers['anthropic-version'] = ANTHROPIC_VERSION
        return headers

    def format_messages(self, messages: Sequence[Message]) -> dict[str, Any]:
        """Return ``{"system": str | None, "messages": [...]}``."""
        system, turns = alternate_turns(messages)
        return {'system': system, 'messages': [turn.to_dict() for turn in turns]}

    def _build_request_body(self, messages: Sequence[Message], options: GenerationOptions) -> dict[str, Any]:
        formatted = self.format_messages(messages)
        body: dict[str, Any] = {
            'model': self.config.model,
            'messages': formatted['messages'],
            'max_tokens': self._max_tokens(options),
            'temperature': self._temperature(options),
        }
        if formatted['system']:
            body['system'] = formatted['system']
        if options.top_p is not None:
            body['top_p'] = options.top_p
        if options.stop:
            body['stop_sequences'] = options.stop
        if options.stream:
            body['stream'] = True
        return body

    async def _invoke(self, messages: list[Message], options: GenerationOptions) -> GenerationResponse:
        body = self._build_request_body(messages, options)
        data = await self._send_checked('POST', f'{self.base_url}/v1/messages', headers=self._headers(), json=body)
        return self._parse_claude_response(data)

    def _parse_claude_response(self, data: Any) -> GenerationResponse:
        try:
            parsed = _MessagesResponse.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError('Invalid response format: unexpected Claude message shape') from exc

        content = ''.join(block.text or '' for block in parsed.content if block.type == 'text')

        usage = None
        if parsed.usage is not None:
            usage = Usage(
                prompt_tokens=parsed.usage.input_tokens,
                completion_tokens=parsed.usage.output_tokens,
                total_tokens=(parsed.usage.input_tokens or 0) + (parsed.usage.output_tokens or 0),
            )
        return GenerationResponse(content=content, model=parsed.model, usage=usage, finish_reason=parsed.stop_reason)

    def _parse_error_response(self, response: httpx.Response) -> ProviderAPIError:
        error = super()._parse_error_response(response)
        status = response.status_code

        if status == 401:
            return error.with_message('Invalid API key. Please check your Anthropic API key.')
        if status == 529:
            # Overloaded is already a ServerError by status; only the text changes.
            return error.with_message('Anthropic API is overloaded. Please try again later.')
        if status in (403, 404, 429) or isinstance(error, ServerError):
            return error

        error_type = error_field(error, 'type')
        if error_type:
            return error.with_message(f'[{error_type}] {error.message}')
        return error


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(
    'claude',
    ClaudeProvider,
    ProviderInfo(
        display_name='Anthropic Claude',
        description="Anthropic's Claude models - excellent for roleplay and creative writing",
        default_base_url='https://api.anthropic.com',
        website='https://console.anthropic.com/',
    ),
)
