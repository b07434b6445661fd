"""adapters.openrouter_adapter

OpenRouter universal gateway: one key, many upstream vendors.

Adds the attribution headers OpenRouter uses for app rankings
(``HTTP-Referer``, ``X-Title``), provider-routing body fields, and a balance
lookup (``GET /auth/key``) used by the connection test.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from llm_relay.adapters.openai_compatible import OpenAICompatibleProvider
from llm_relay.core.exceptions import LLMRelayError
from llm_relay.core.types import AccountInfo, ConnectionTestResult, ModelInfo, ProviderInfo
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from llm_relay.core.types import GenerationOptions

logger = logging.getLogger(__name__)

DEFAULT_SITE_URL = 'http://localhost'
DEFAULT_SITE_NAME = 'LLM Relay'

OPENROUTER_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='anthropic/claude-opus-4', name='Claude Opus 4', context_window=200000, supports_streaming=True),
    ModelInfo(id='anthropic/claude-sonnet-4', name='Claude Sonnet 4', context_window=200000, supports_streaming=True),
    ModelInfo(id='anthropic/claude-3.5-sonnet', name='Claude 3.5 Sonnet', context_window=200000, supports_streaming=True),
    ModelInfo(id='anthropic/claude-3.5-haiku', name='Claude 3.5 Haiku', context_window=200000, supports_streaming=True),
    ModelInfo(id='openai/gpt-4o', name='GPT-4o', context_window=128000, supports_streaming=True),
    ModelInfo(id='openai/gpt-4o-mini', name='GPT-4o Mini', context_window=128000, supports_streaming=True),
    ModelInfo(id='openai/o1-preview', name='O1 Preview', context_window=128000, supports_streaming=False),
    ModelInfo(id='google/gemini-2.0-flash', name='Gemini 2.0 Flash', context_window=1000000, supports_streaming=True),
    ModelInfo(id='google/gemini-1.5-pro', name='Gemini 1.5 Pro', context_window=2000000, supports_streaming=True),
    ModelInfo(
        id='meta-llama/llama-3.3-70b-instruct',
        name='Llama 3.3 70B Instruct',
        context_window=128000,
        supports_streaming=True,
    ),
    ModelInfo(
        id='meta-llama/llama-3.1-405b-instruct',
        name='Llama 3.1 405B Instruct',
        context_window=128000,
        supports_streaming=True,
    ),
    ModelInfo(
        id='mistralai/mistral-large-2411',
        name='Mistral Large (Nov 2024)',
        context_window=128000,
        supports_streaming=True,
    ),
    ModelInfo(id='mistralai/mixtral-8x22b-instruct', name='Mixtral 8x22B', context_window=65536, supports_streaming=True),
    ModelInfo(id='deepseek/deepseek-r1', name='DeepSeek R1', context_window=64000, supports_streaming=True),
    ModelInfo(id='deepseek/deepseek-chat', name='DeepSeek Chat', context_window=64000, supports_streaming=True),
    ModelInfo(id='qwen/qwen-2.5-72b-instruct', name='Qwen 2.5 72B', context_window=128000, supports_streaming=True),
    ModelInfo(
        id='meta-llama/llama-3.2-3b-instruct:free',
        name='Llama 3.2 3B (Free)',
        context_window=128000,
        supports_streaming=True,
    ),
    ModelInfo(id='google/gemma-2-9b-it:free', name='Gemma 2 9B (Free)', context_window=8192, supports_streaming=True),
)


class _KeyData(BaseModel):
    limit: float | None = None
    usage: float | None = None


class _KeyResponse(BaseModel):
    data: _KeyData = _KeyData()


class OpenRouterProvider(OpenAICompatibleProvider):
    api_key_env = ('OPENROUTER_API_KEY',)
    missing_api_key_message = 'OpenRouter API key is required'
    default_config = {
        'base_url': 'https://openrouter.ai/api/v1',
        'model': 'anthropic/claude-sonnet-4',
        'max_tokens': 4096,
    }

    @property
    def name(self) -> str:
        return 'openrouter'

    @property
    def display_name(self) -> str:
        return 'OpenRouter'

    def get_available_models(self) -> list[ModelInfo]:
        return list(OPENROUTER_MODELS)

    @property
    def site_url(self) -> str:
        return self.config.additional_options.get('site_url') or DEFAULT_SITE_URL

    @property
    def site_name(self) -> str:
        return self.config.additional_options.get('site_name') or DEFAULT_SITE_NAME

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers['HTTP-Referer'] = self.site_url
        headers['X-Title'] = self.site_name
        return headers

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        route = options.option('route')
        providers = options.option('providers')
        if providers or route:
            body['route'] = route or 'fallback'
            if providers:
                body['providers'] = providers

        transforms = options.option('transforms')
        if transforms:
            body['transforms'] = transforms

        provider_order = options.option('provider_order')
        if provider_order:
            body['provider'] = {'order': provider_order}

        if options.option('allow_fallback', True) is not False:
            body.setdefault('provider', {})['allow_fallbacks'] = True

        return body

    async def fetch_available_models(self) -> list[ModelInfo]:
        """Live catalog with pricing, or the static catalog on failure."""
        try:
            return await self._list_models()
        except LLMRelayError as exc:
            logger.warning('[openrouter] Failed to fetch models, using static catalog: %s', exc)
            return self.get_available_models()

    async def get_account_info(self) -> AccountInfo | None:
        """Credit limit and usage for the configured key; ``None`` on failure."""
        try:
            response = await self._make_request('GET', f'{self.base_url}/auth/key', headers=self._headers())
        except LLMRelayError as exc:
            logger.warning('[openrouter] Failed to get account info: %s', exc)
            return None
        if not response.is_success:
            return None

        try:
            key = _KeyResponse.model_validate(response.json())
        except ValueError as exc:
            logger.warning('[openrouter] Unexpected /auth/key payload: %s', exc)
            return None
        return AccountInfo(credits=key.data.limit or 0.0, usage=key.data.usage or 0.0)

    async def test_connection(self) -> ConnectionTestResult:
        validation = self.validate_config()
        if not validation.valid:
            return ConnectionTestResult(success=False, message=f'Configuration error: {", ".join(validation.errors)}')

        account = await self.get_account_info()
        if account is None:
            return ConnectionTestResult(success=False, message='Invalid API key. Please check your OpenRouter API key.')

        result = await super().test_connection()
        if result.success:
            result.message = f'Connection successful! Credits remaining: ${account.remaining:.4f}'
        return result


provider_registry.register(
    'openrouter',
    OpenRouterProvider,
    ProviderInfo(
        display_name='OpenRouter',
        description='Access many models through one API - Claude, GPT, Llama, and more',
        default_base_url='https://openrouter.ai/api/v1',
        website='https://openrouter.ai/',
    ),
)
