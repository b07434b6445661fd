"""core.types

Shared DTOs and enums used throughout *llm_relay*.

These models live in the **core** layer so that *adapters*, *registry*, and
higher application layers can depend on them without causing circular imports.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Chat roles (OpenAI-style for broad compatibility)
# ---------------------------------------------------------------------------


class Role(StrEnum):
    system = 'system'
    user = 'user'
    assistant = 'assistant'


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """Single chat message."""

    role: Role
    content: str

    # Immutable value-object; content is kept byte-for-byte
    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> dict[str, str]:
        return {'role': self.role.value, 'content': self.content}


# ---------------------------------------------------------------------------
# Adapter configuration
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """Connection and sampling settings owned by one adapter instance.

    Fields the caller leaves unset are filled from the adapter's own defaults
    (base URL, default model, max tokens) at construction time.
    """

    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    max_tokens: int = Field(2048, ge=1)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    timeout_ms: int = Field(60_000, ge=1, description='Total request budget in milliseconds')
    additional_options: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def with_updates(self, **changes: Any) -> ProviderConfig:
        """Return a validated copy with *changes* applied."""
        return self.model_validate({**self.model_dump(exclude_unset=True), **changes})


# ---------------------------------------------------------------------------
# Generation options (per-call overrides)
#   • Extra fields are permitted so callers can pass provider-specific knobs
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Per-call overrides. Unknown fields are kept for vendor adapters."""

    max_tokens: int | None = Field(None, ge=1)
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    stream: bool = False
    stop: list[str] | None = None
    top_p: float | None = Field(None, ge=0.0, le=1.0)
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    # Allow provider-specific parameters without schema errors
    model_config = ConfigDict(extra='allow')

    def option(self, name: str, default: Any = None) -> Any:
        """Return a vendor-specific extension field, or *default*."""
        return (self.model_extra or {}).get(name, default)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class Usage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    model_config = ConfigDict(frozen=True)


class GenerationResponse(BaseModel):
    """Normalised completion. ``content`` is always a flat string."""

    content: str
    model: str | None = None
    usage: Usage | None = None
    finish_reason: str | None = None

    model_config = ConfigDict(frozen=True)


class ModelInfo(BaseModel):
    id: str
    name: str
    context_window: int | None = None
    supports_streaming: bool | None = None
    pricing: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True)


class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    model: str | None = None
    latency_ms: int | None = None


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class RateLimitState(BaseModel):
    """Mutable per-adapter rate-limit bookkeeping (epoch seconds)."""

    last_request_time: float = 0.0
    request_count: int = 0
    reset_time: float = 0.0


class AccountInfo(BaseModel):
    credits: float = 0.0
    usage: float = 0.0

    @property
    def remaining(self) -> float:
        return self.credits - self.usage


# ---------------------------------------------------------------------------
# Registry metadata
# ---------------------------------------------------------------------------


class ProviderInfo(BaseModel):
    """Static, UI-facing description of a registered provider."""

    display_name: str
    description: str = ''
    is_local: bool = False
    requires_api_key: bool = True
    default_base_url: str | None = None
    website: str | None = None

    model_config = ConfigDict(frozen=True)


class ProviderStatus(BaseModel):
    type: str
    name: str
    status: Literal['ok', 'error', 'unconfigured']
    message: str
    latency_ms: int | None = None
