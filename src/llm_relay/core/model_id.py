"""core.model_id

``"<provider>:<model>"`` shorthand accepted by
:meth:`~llm_relay.registry.client_factory.ProviderFactory.initialize_client`.

Only the first colon separates the halves, so Ollama tags
(``ollama:llama3.2:1b``) and OpenRouter slugs
(``openrouter:anthropic/claude-sonnet-4``) survive intact. The provider half is
matched case-insensitively against the registry; the model half is handed to
the vendor untouched because some backends (LM Studio file paths) are
case-sensitive.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVIDER_SLUG: re.Pattern[str] = re.compile(r'^[a-z0-9_-]+$')
SEPARATOR = ':'


class ModelId(BaseModel):
    """Parsed ``provider:model`` pair; ``raw`` keeps the caller's spelling."""

    provider: str = Field(..., pattern=PROVIDER_SLUG.pattern, description='registry slug')
    model: str = Field(..., min_length=1, description='vendor model name')
    raw: str

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @field_validator('provider', mode='before')
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('model')
    @classmethod
    def _reject_inner_whitespace(cls, value: str) -> str:
        if any(char.isspace() for char in value):
            raise ValueError('model name must not contain whitespace')
        return value

    @classmethod
    def parse(cls, raw: str) -> ModelId:
        """Split *raw* at its first colon.

        >>> ModelId.parse('Ollama:llama3.2:1b').model
        'llama3.2:1b'

        Raises
        ------
        ValueError
            If either half is missing or the provider is not a slug.

        """
        provider, separator, model = raw.strip().partition(SEPARATOR)
        if not separator or not PROVIDER_SLUG.match(provider.lower()) or not model.strip():
            raise ValueError(f"Invalid model id. Expected '<provider>:<model>', got: {raw!r}")
        return cls(provider=provider, model=model, raw=raw)

    def __str__(self) -> str:
        return f'{self.provider}{SEPARATOR}{self.model}'


parse_model_id = ModelId.parse
