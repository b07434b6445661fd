"""adapters.groq_adapter

Groq fast-inference gateway (OpenAI-compatible). Rate limits are generous but
strictly enforced, so error and connection-test messages say so.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from llm_relay.adapters.openai_compatible import OpenAICompatibleProvider
from llm_relay.core.exceptions import LLMRelayError, ProviderAPIError, RateLimitError
from llm_relay.core.transport import error_field
from llm_relay.core.types import ModelInfo, ProviderInfo
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    import httpx

    from llm_relay.core.types import GenerationOptions

logger = logging.getLogger(__name__)

# Speech-to-text models share the /models listing but cannot chat.
_NON_CHAT_MARKERS = ('whisper',)

GROQ_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='llama-3.3-70b-versatile', name='Llama 3.3 70B Versatile', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama-3.1-70b-versatile', name='Llama 3.1 70B Versatile', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama-3.1-8b-instant', name='Llama 3.1 8B Instant', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama3-70b-8192', name='Llama 3 70B', context_window=8192, supports_streaming=True),
    ModelInfo(id='llama3-8b-8192', name='Llama 3 8B', context_window=8192, supports_streaming=True),
    ModelInfo(id='mixtral-8x7b-32768', name='Mixtral 8x7B', context_window=32768, supports_streaming=True),
    ModelInfo(id='gemma2-9b-it', name='Gemma 2 9B', context_window=8192, supports_streaming=True),
    ModelInfo(
        id='deepseek-r1-distill-llama-70b',
        name='DeepSeek R1 Distill Llama 70B',
        context_window=128000,
        supports_streaming=True,
    ),
    ModelInfo(id='qwen-2.5-72b', name='Qwen 2.5 72B', context_window=128000, supports_streaming=True),
    ModelInfo(id='qwen-2.5-coder-32b', name='Qwen 2.5 Coder 32B', context_window=128000, supports_streaming=True),
)


class GroqProvider(OpenAICompatibleProvider):
    api_key_env = ('GROQ_API_KEY',)
    missing_api_key_message = 'Groq API key is required'
    default_config = {
        'base_url': 'https://api.groq.com/openai/v1',
        'model': 'llama-3.3-70b-versatile',
        'max_tokens': 4096,
    }

    @property
    def name(self) -> str:
        return 'groq'

    @property
    def display_name(self) -> str:
        return 'Groq'

    def get_available_models(self) -> list[ModelInfo]:
        return list(GROQ_MODELS)

    async def _list_models(self) -> list[ModelInfo]:
        models = await super()._list_models()
        return [model for model in models if not any(marker in model.id for marker in _NON_CHAT_MARKERS)]

    async def fetch_available_models(self) -> list[ModelInfo]:
        try:
            return await self._list_models()
        except LLMRelayError as exc:
            logger.warning('[groq] Failed to fetch models, using static catalog: %s', exc)
            return self.get_available_models()

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        if options.option('json_mode'):
            body['response_format'] = {'type': 'json_object'}

        tools = options.option('tools')
        if tools:
            body['tools'] = tools

        tool_choice = options.option('tool_choice')
        if tool_choice:
            body['tool_choice'] = tool_choice

        return body

    def _parse_error_response(self, response: httpx.Response) -> ProviderAPIError:
        error = super()._parse_error_response(response)
        status = response.status_code

        if status == 401:
            return error.with_message('Invalid API key. Please check your Groq API key.')
        if status == 429:
            return error.with_message(
                'Rate limit exceeded. Groq enforces rate limits strictly. Please wait before making more requests.',
            )
        if status == 503:
            return error.with_message('Groq service is temporarily unavailable. Please try again later.')
        if status in (403, 404) or status >= 500:
            return error

        code = error_field(error, 'code')
        if code:
            return error.with_message(f'[{code}] {error.message}')
        return error

    def _format_error_message(self, error: BaseException) -> str:
        text = str(error)
        code = error_field(error, 'code') if isinstance(error, ProviderAPIError) else None
        if isinstance(error, RateLimitError) or 'rate_limit' in text:
            return 'Rate limit exceeded. Groq has generous limits but they are enforced. Please wait a moment.'
        if code == 'model_not_found' or 'model_not_found' in text:
            return f'Model "{self.config.model}" is not available on Groq. Check available models.'
        return super()._format_error_message(error)

    def _connection_success_message(self, latency_ms: int) -> str:
        return f'Connection successful! Response time: {latency_ms}ms (Groq is fast!)'


provider_registry.register(
    'groq',
    GroqProvider,
    ProviderInfo(
        display_name='Groq',
        description='Extremely fast inference for open-source models',
        default_base_url='https://api.groq.com/openai/v1',
        website='https://console.groq.com/',
    ),
)
