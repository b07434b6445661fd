"""adapters

Importing this package registers every bundled provider with
:data:`llm_relay.registry.provider_registry.provider_registry`. The import
order below is the registration order reported by the factory.
"""

from llm_relay.adapters import (  # noqa: F401
    anthropic_adapter,
    openai_adapter,
    gemini_adapter,
    lmstudio_adapter,
    ollama_adapter,
    openrouter_adapter,
    groq_adapter,
)
