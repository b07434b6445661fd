"""adapters.gemini_adapter

Adapter for the native Google **Gemini** ``generateContent`` API.

Gemini wants ``contents`` of ``{role, parts: [{text}]}`` with the role
``model`` instead of ``assistant``, a separate ``systemInstruction``, and the
API key as the ``key`` query parameter.

Safety settings
===============
Every request carries a ``safetySettings`` block. The default,
:data:`PERMISSIVE_SAFETY_SETTINGS`, disables blocking for all four harm
categories because the layer serves creative-writing and roleplay use. This
is a product default, not a security control. Integrators who want Google's
filtering back can pass their own list through
``ProviderConfig.additional_options["safety_settings"]`` (per adapter) or the
``safety_settings`` generation option (per call); an empty list omits the
block entirely and defers to the API's own defaults.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from llm_relay.core.abc import BaseProvider
from llm_relay.core.exceptions import AuthenticationError, ContentBlockedError, MalformedResponseError
from llm_relay.core.formatting import alternate_turns
from llm_relay.core.transport import error_field, upstream_message
from llm_relay.core.types import GenerationResponse, ModelInfo, ProviderInfo, Role, Usage
from llm_relay.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from llm_relay.core.exceptions import ProviderAPIError
    from llm_relay.core.types import GenerationOptions, Message

PERMISSIVE_SAFETY_SETTINGS: tuple[dict[str, str], ...] = (
    {'category': 'HARM_CATEGORY_HARASSMENT', 'threshold': 'BLOCK_NONE'},
    {'category': 'HARM_CATEGORY_HATE_SPEECH', 'threshold': 'BLOCK_NONE'},
    {'category': 'HARM_CATEGORY_SEXUALLY_EXPLICIT', 'threshold': 'BLOCK_NONE'},
    {'category': 'HARM_CATEGORY_DANGEROUS_CONTENT', 'threshold': 'BLOCK_NONE'},
)

GEMINI_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo(id='gemini-2.0-flash', name='Gemini 2.0 Flash', context_window=1000000, supports_streaming=True),
    ModelInfo(id='gemini-2.0-flash-lite', name='Gemini 2.0 Flash Lite', context_window=1000000, supports_streaming=True),
    ModelInfo(id='gemini-1.5-pro', name='Gemini 1.5 Pro', context_window=2000000, supports_streaming=True),
    ModelInfo(id='gemini-1.5-flash', name='Gemini 1.5 Flash', context_window=1000000, supports_streaming=True),
    ModelInfo(id='gemini-1.5-flash-8b', name='Gemini 1.5 Flash 8B', context_window=1000000, supports_streaming=True),
    ModelInfo(id='gemini-1.0-pro', name='Gemini 1.0 Pro', context_window=32768, supports_streaming=True),
)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class _Part(BaseModel):
    text: str | None = None


class _Content(BaseModel):
    parts: list[_Part] = []


class _Candidate(BaseModel):
    content: _Content | None = None
    finishReason: str | None = None  # noqa: N815


class _PromptFeedback(BaseModel):
    blockReason: str | None = None  # noqa: N815


class _UsageMetadata(BaseModel):
    promptTokenCount: int | None = None  # noqa: N815
    candidatesTokenCount: int | None = None  # noqa: N815
    totalTokenCount: int | None = None  # noqa: N815


class _GenerateContentResponse(BaseModel):
    candidates: list[_Candidate] = []
    promptFeedback: _PromptFeedback | None = None  # noqa: N815
    usageMetadata: _UsageMetadata | None = None  # noqa: N815


# ---------------------------------------------------------------------------
# Adapter implementation
# ---------------------------------------------------------------------------


class GeminiProvider(BaseProvider):
    """Google Gemini API provider."""

    api_key_env = ('GEMINI_API_KEY', 'GOOGLE_API_KEY')
    missing_api_key_message = 'Google AI API key is required'
    default_config = {
        'base_url': 'https://generativelanguage.googleapis.com/v1beta',
        'model': 'gemini-2.0-flash',
        'max_tokens': 8192,
    }

    @property
    def name(self) -> str:
        return 'gemini'

    @property
    def display_name(self) -> str:
        return 'Google Gemini'

    def supports_streaming(self) -> bool:
        return True

    def get_available_models(self) -> list[ModelInfo]:
        return list(GEMINI_MODELS)

    def format_messages(self, messages: Sequence[Message]) -> dict[str, Any]:
        """Return ``{"systemInstruction": {...} | None, "contents": [...]}``."""
        system, turns = alternate_turns(messages)
        system_instruction = {'parts': [{'text': system}]} if system is not None else None
        contents = [
            {'role': 'model' if turn.role is Role.assistant else 'user', 'parts': [{'text': turn.content}]}
            for turn in turns
        ]
        return {'systemInstruction': system_instruction, 'contents': contents}

    def _safety_settings(self, options: GenerationOptions) -> list[dict[str, str]]:
        per_call = options.option('safety_settings')
        if per_call is not None:
            return list(per_call)
        configured = self.config.additional_options.get('safety_settings')
        if configured is not None:
            return list(configured)
        return [dict(setting) for setting in PERMISSIVE_SAFETY_SETTINGS]

    def _build_request_body(self, messages: Sequence[Message], options: GenerationOptions) -> dict[str, Any]:
        formatted = self.format_messages(messages)
        generation_config: dict[str, Any] = {
            'maxOutputTokens': self._max_tokens(options),
            'temperature': self._temperature(options),
        }
        if options.top_p is not None:
            generation_config['topP'] = options.top_p
        if options.stop:
            generation_config['stopSequences'] = options.stop

        body: dict[str, Any] = {'contents': formatted['contents'], 'generationConfig': generation_config}
        if formatted['systemInstruction'] is not None:
            body['systemInstruction'] = formatted['systemInstruction']

        safety_settings = self._safety_settings(options)
        if safety_settings:
            body['safetySettings'] = safety_settings
        return body

    async def _invoke(self, messages: list[Message], options: GenerationOptions) -> GenerationResponse:
        body = self._build_request_body(messages, options)
        url = f'{self.base_url}/models/{self.config.model}:generateContent'
        data = await self._send_checked(
            'POST',
            url,
            headers=self._default_headers(),
            json=body,
            params={'key': self.get_api_key() or ''},
        )
        return self._parse_gemini_response(data)

    def _parse_gemini_response(self, data: Any) -> GenerationResponse:
        try:
            parsed = _GenerateContentResponse.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError('Invalid response format: unexpected Gemini response shape') from exc

        if parsed.promptFeedback is not None and parsed.promptFeedback.blockReason:
            raise ContentBlockedError(f'Content blocked: {parsed.promptFeedback.blockReason}')

        if not parsed.candidates:
            raise MalformedResponseError('No response generated')

        candidate = parsed.candidates[0]
        if candidate.finishReason == 'SAFETY':
            raise ContentBlockedError('Response blocked by safety filters')

        content = ''
        if candidate.content is not None:
            content = ''.join(part.text for part in candidate.content.parts if part.text)

        usage = None
        if parsed.usageMetadata is not None:
            usage = Usage(
                prompt_tokens=parsed.usageMetadata.promptTokenCount,
                completion_tokens=parsed.usageMetadata.candidatesTokenCount,
                total_tokens=parsed.usageMetadata.totalTokenCount,
            )
        return GenerationResponse(
            content=content,
            model=self.config.model,
            usage=usage,
            finish_reason=candidate.finishReason,
        )

    def _parse_error_response(self, response: httpx.Response) -> ProviderAPIError:
        error = super()._parse_error_response(response)
        status = response.status_code

        if status == 400:
            message = upstream_message(error) or error.message
            if 'API key' in message:
                return AuthenticationError(
                    'Invalid API key. Please check your Google AI API key.',
                    status_code=status,
                    body=error.body,
                )
        if status == 403:
            return error.with_message('Access forbidden. Please check your API key permissions.')
        if status == 429:
            return error
        if status == 503:
            return error.with_message('Gemini API is temporarily unavailable. Please try again later.')
        if status in (401, 404) or status >= 500:
            return error

        error_status = error_field(error, 'status')
        if error_status:
            return error.with_message(f'[{error_status}] {error.message}')
        return error


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(
    'gemini',
    GeminiProvider,
    ProviderInfo(
        display_name='Google Gemini',
        description="Google's Gemini models with large context windows",
        default_base_url='https://generativelanguage.googleapis.com/v1beta',
        website='https://aistudio.google.com/',
    ),
)
