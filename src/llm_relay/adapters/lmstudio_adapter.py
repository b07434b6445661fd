"""adapters.lmstudio_adapter

LM Studio local server. OpenAI-compatible, no API key required (one is sent
if configured), models are whatever the user has loaded.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from llm_relay.adapters.openai_compatible import OpenAICompatibleProvider
from llm_relay.core.exceptions import NetworkError, RequestTimeoutError
from llm_relay.core.types import ConnectionTestResult, ModelInfo, ProviderInfo
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from llm_relay.core.types import GenerationOptions

_WEIGHT_FILE_SUFFIX = re.compile(r'\.(gguf|bin|safetensors)$', re.IGNORECASE)

# generation option name -> LM Studio body field
_SAMPLING_EXTENSIONS = {
    'repeat_penalty': 'repeat_penalty',
    'min_p': 'min_p',
    'mirostat': 'mirostat',
}


def format_model_name(model_id: str) -> str:
    """``lmstudio-community/Qwen2.5-7B.gguf`` -> ``Qwen2.5-7B``."""
    return _WEIGHT_FILE_SUFFIX.sub('', model_id.split('/')[-1])


class LMStudioProvider(OpenAICompatibleProvider):
    missing_base_url_message = 'LM Studio server URL is required'
    default_config = {
        'base_url': 'http://localhost:1234/v1',
        'model': 'local-model',
        'max_tokens': 2048,
    }

    @property
    def name(self) -> str:
        return 'lmstudio'

    @property
    def display_name(self) -> str:
        return 'LM Studio'

    def is_local(self) -> bool:
        return True

    def requires_api_key(self) -> bool:
        return False

    async def _list_models(self) -> list[ModelInfo]:
        models = await super()._list_models()
        return [model.model_copy(update={'name': format_model_name(model.id)}) for model in models]

    def _enhance_request_body(self, body: dict[str, Any], options: GenerationOptions) -> dict[str, Any]:
        for option_name, field in _SAMPLING_EXTENSIONS.items():
            value = options.option(option_name)
            if value is not None:
                body[field] = value
        return body

    async def test_connection(self) -> ConnectionTestResult:
        # Listing models first tells "server down" apart from "nothing loaded".
        try:
            models = await self._list_models()
        except (NetworkError, RequestTimeoutError):
            return ConnectionTestResult(
                success=False,
                message=(
                    'Cannot connect to LM Studio. Make sure LM Studio is running '
                    'and the server is started (Settings > Server).'
                ),
            )
        except Exception as exc:  # noqa: BLE001
            return ConnectionTestResult(success=False, message=self._format_error_message(exc))

        if not models:
            return ConnectionTestResult(
                success=False,
                message='LM Studio server responded but no models are loaded. Please load a model in LM Studio.',
            )
        return await super().test_connection()


provider_registry.register(
    'lmstudio',
    LMStudioProvider,
    ProviderInfo(
        display_name='LM Studio',
        description='Run models locally with LM Studio - no API key needed',
        is_local=True,
        requires_api_key=False,
        default_base_url='http://localhost:1234/v1',
        website='https://lmstudio.ai/',
    ),
)
