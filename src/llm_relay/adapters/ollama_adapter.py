"""adapters.ollama_adapter

Ollama local server.

Chat goes through Ollama's OpenAI-compatible ``/v1`` surface; model listing
and pulling use the native API (``/api/tags``, ``/api/pull``) on the server
root, because the compatible ``/v1/models`` endpoint omits details.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from llm_relay.adapters.openai_compatible import OpenAICompatibleProvider
from llm_relay.core.exceptions import LLMRelayError, MalformedResponseError, NetworkError, RequestTimeoutError
from llm_relay.core.types import ConnectionTestResult, ModelInfo, ProviderInfo
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from llm_relay.core.types import GenerationOptions

logger = logging.getLogger(__name__)

_OPENAI_SUFFIX = re.compile(r'/v1$')

# Installed models named in a "model not installed" message.
_LISTED_MODELS = 5

# generation option name -> key inside Ollama's "options" object
_RUNTIME_OPTIONS = {
    'num_ctx': 'num_ctx',
    'num_predict': 'num_predict',
    'repeat_penalty': 'repeat_penalty',
    'seed': 'seed',
    'num_gpu': 'num_gpu',
}

OLLAMA_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='llama3.2', name='Llama 3.2 (3B)', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama3.2:1b', name='Llama 3.2 (1B)', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama3.1', name='Llama 3.1 (8B)', context_window=128000, supports_streaming=True),
    ModelInfo(id='llama3.1:70b', name='Llama 3.1 (70B)', context_window=128000, supports_streaming=True),
    ModelInfo(id='mistral', name='Mistral (7B)', context_window=32768, supports_streaming=True),
    ModelInfo(id='mixtral', name='Mixtral (8x7B)', context_window=32768, supports_streaming=True),
    ModelInfo(id='codellama', name='Code Llama', context_window=16384, supports_streaming=True),
    ModelInfo(id='deepseek-r1', name='DeepSeek R1', context_window=64000, supports_streaming=True),
    ModelInfo(id='qwen2.5', name='Qwen 2.5 (7B)', context_window=128000, supports_streaming=True),
    ModelInfo(id='gemma2', name='Gemma 2 (9B)', context_window=8192, supports_streaming=True),
    ModelInfo(id='phi3', name='Phi-3 (3.8B)', context_window=4096, supports_streaming=True),
)


class _Tag(BaseModel):
    name: str


class _TagList(BaseModel):
    models: list[_Tag] = []


def format_model_name(tag: str) -> str:
    """``deepseek-r1:14b`` -> ``Deepseek R1``."""
    base = tag.split(':')[0].replace('-', ' ')
    return re.sub(r'\b\w', lambda match: match.group().upper(), base)


class OllamaProvider(OpenAICompatibleProvider):
    missing_base_url_message = 'Ollama server URL is required'
    default_config = {
        'base_url': 'http://localhost:11434/v1',
        'model': 'llama3.2',
        'max_tokens': 2048,
    }

    @property
    def name(self) -> str:
        return 'ollama'

    @property
    def display_name(self) -> str:
        return 'Ollama'

    def is_local(self) -> bool:
        return True

    def requires_api_key(self) -> bool:
        return False

    def get_available_models(self) -> list[ModelInfo]:
        # Common models; actual availability depends on what has been pulled.
        return list(OLLAMA_MODELS)

    @property
    def native_base_url(self) -> str:
        """Server root without the OpenAI-compatible ``/v1`` suffix."""
        return _OPENAI_SUFFIX.sub('', self.base_url)

    def _headers(self) -> dict[str, str]:
        return self._default_headers()

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        runtime: dict[str, Any] = {}
        for option_name, key in _RUNTIME_OPTIONS.items():
            value = options.option(option_name)
            if value is not None:
                runtime[key] = value
        if runtime:
            body['options'] = runtime

        keep_alive = options.option('keep_alive')
        if keep_alive is not None:
            body['keep_alive'] = keep_alive
        return body

    # ------------------------------------------------------------------
    # Native API
    # ------------------------------------------------------------------

    async def _list_models(self) -> list[ModelInfo]:
        data = await self._send_checked('GET', f'{self.native_base_url}/api/tags', headers=self._default_headers())
        try:
            tags = _TagList.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError('Invalid model list format') from exc
        return [ModelInfo(id=tag.name, name=format_model_name(tag.name)) for tag in tags.models]

    async def fetch_available_models(self) -> list[ModelInfo]:
        """Installed models, or the static catalog if the server is unreachable."""
        try:
            return await self._list_models()
        except LLMRelayError as exc:
            logger.warning('[ollama] Failed to fetch models, using static catalog: %s', exc)
            return self.get_available_models()

    async def pull_model(self, model_name: str) -> bool:
        """Ask the server to download *model_name*. Returns success."""
        try:
            await self._send_checked(
                'POST',
                f'{self.native_base_url}/api/pull',
                headers=self._default_headers(),
                json={'name': model_name, 'stream': False},
            )
        except LLMRelayError as exc:
            logger.error('[ollama] Failed to pull model %s: %s', model_name, exc)
            return False
        return True

    def _model_installed(self, models: list[ModelInfo]) -> bool:
        wanted = self.config.model or ''
        return any(model.id == wanted or model.id.startswith(f'{wanted}:') for model in models)

    async def test_connection(self) -> ConnectionTestResult:
        try:
            models = await self._list_models()
        except (NetworkError, RequestTimeoutError):
            return ConnectionTestResult(
                success=False,
                message='Cannot connect to Ollama. Make sure Ollama is running (run "ollama serve" in terminal).',
            )
        except Exception as exc:  # noqa: BLE001
            return ConnectionTestResult(success=False, message=self._format_error_message(exc))

        if not models:
            return ConnectionTestResult(
                success=False,
                message='Ollama server is running but no models are installed. '
                'Run "ollama pull llama3.2" to install a model.',
            )

        if not self._model_installed(models):
            listed = ', '.join(model.id for model in models[:_LISTED_MODELS])
            more = '...' if len(models) > _LISTED_MODELS else ''
            return ConnectionTestResult(
                success=False,
                message=f'Model "{self.config.model}" is not installed. Available models: {listed}{more}',
            )

        return await super().test_connection()


provider_registry.register(
    'ollama',
    OllamaProvider,
    ProviderInfo(
        display_name='Ollama',
        description='Run open-source models locally with Ollama - no API key needed',
        is_local=True,
        requires_api_key=False,
        default_base_url='http://localhost:11434/v1',
        website='https://ollama.ai/',
    ),
)
