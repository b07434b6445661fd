"""adapters.openai_adapter

Concrete adapter that bridges :class:`llm_relay.core.abc.BaseProvider`
with the **OpenAI Chat Completions** HTTP API.

Requests go straight over ``httpx`` rather than through the ``openai`` SDK so
that the shared transport (timeout, rate-limit gate, header bookkeeping)
applies to OpenAI exactly as it does to every other backend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from llm_relay.adapters.openai_compatible import OpenAICompatibleProvider
from llm_relay.core.types import ModelInfo, ProviderInfo
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from llm_relay.core.types import GenerationOptions

# Reasoning models reject sampling parameters.
_REASONING_UNSUPPORTED = ('temperature', 'top_p', 'frequency_penalty', 'presence_penalty', 'stream')

OPENAI_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='gpt-4o', name='GPT-4o (Latest)', context_window=128000, supports_streaming=True),
    ModelInfo(id='gpt-4o-mini', name='GPT-4o Mini', context_window=128000, supports_streaming=True),
    ModelInfo(id='gpt-4o-2024-11-20', name='GPT-4o (Nov 2024)', context_window=128000, supports_streaming=True),
    ModelInfo(id='gpt-4-turbo', name='GPT-4 Turbo', context_window=128000, supports_streaming=True),
    ModelInfo(id='gpt-4-turbo-preview', name='GPT-4 Turbo Preview', context_window=128000, supports_streaming=True),
    ModelInfo(id='gpt-4', name='GPT-4', context_window=8192, supports_streaming=True),
    ModelInfo(id='gpt-4-32k', name='GPT-4 32K', context_window=32768, supports_streaming=True),
    ModelInfo(id='gpt-3.5-turbo', name='GPT-3.5 Turbo', context_window=16385, supports_streaming=True),
    ModelInfo(id='gpt-3.5-turbo-16k', name='GPT-3.5 Turbo 16K', context_window=16385, supports_streaming=True),
    ModelInfo(id='o1-preview', name='O1 Preview (Reasoning)', context_window=128000, supports_streaming=False),
    ModelInfo(id='o1-mini', name='O1 Mini (Reasoning)', context_window=128000, supports_streaming=False),
)

# ---------------------------------------------------------------------------
# Adapter implementation
# ---------------------------------------------------------------------------


class OpenAIProvider(OpenAICompatibleProvider):
    """Adapter for OpenAI ChatCompletion API."""

    # NOTE: falls back to `OPENAI_API_KEY` when no key is stored.
    api_key_env = ('OPENAI_API_KEY',)
    missing_api_key_message = 'OpenAI API key is required'
    default_config = {
        'base_url': 'https://api.openai.com/v1',
        'model': 'gpt-4o',
        'max_tokens': 4096,
    }

    @property
    def name(self) -> str:
        return 'openai'

    @property
    def display_name(self) -> str:
        return 'OpenAI'

    def get_available_models(self) -> list[ModelInfo]:
        return list(OPENAI_MODELS)

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        if (self.config.model or '').startswith('o1'):
            for key in _REASONING_UNSUPPORTED:
                body.pop(key, None)

        if options.option('json_mode'):
            body['response_format'] = {'type': 'json_object'}

        seed = options.option('seed')
        if seed is not None:
            body['seed'] = seed

        return body


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(
    'openai',
    OpenAIProvider,
    ProviderInfo(
        display_name='OpenAI',
        description="OpenAI's GPT models including GPT-4o",
        default_base_url='https://api.openai.com/v1',
        website='https://platform.openai.com/',
    ),
)
