"""llm_relay

One async interface over Anthropic, OpenAI, Google Gemini, LM Studio,
Ollama, OpenRouter and Groq.

```python
from llm_relay import Message, ProviderFactory

factory = ProviderFactory()
provider = factory.initialize_client('openai:gpt-4o-mini')
reply = await provider.generate_response([Message(role='user', content='Hi')])
```
"""

from llm_relay.core.abc import BaseProvider
from llm_relay.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ContentBlockedError,
    EndpointNotFoundError,
    LLMRelayError,
    MalformedResponseError,
    NetworkError,
    ProviderAPIError,
    ProviderNotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from llm_relay.core.retry import RetryStrategy, with_retry
from llm_relay.core.storage import InMemoryStore, JsonFileStore, KeyValueStore
from llm_relay.core.types import (
    ConnectionTestResult,
    GenerationOptions,
    GenerationResponse,
    Message,
    ModelInfo,
    ProviderConfig,
    Role,
)
from llm_relay.registry.client_factory import ProviderFactory
from llm_relay.registry.provider_registry import provider_registry

__all__ = [
    'AuthenticationError',
    'BaseProvider',
    'ConfigurationError',
    'ConnectionTestResult',
    'ContentBlockedError',
    'EndpointNotFoundError',
    'GenerationOptions',
    'GenerationResponse',
    'InMemoryStore',
    'JsonFileStore',
    'KeyValueStore',
    'LLMRelayError',
    'MalformedResponseError',
    'Message',
    'ModelInfo',
    'NetworkError',
    'ProviderAPIError',
    'ProviderConfig',
    'ProviderFactory',
    'ProviderNotFoundError',
    'RateLimitError',
    'RequestTimeoutError',
    'RetryStrategy',
    'Role',
    'ServerError',
    'provider_registry',
    'with_retry',
]
