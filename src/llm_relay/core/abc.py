"""core.abc

Abstract base class that *all* provider adapters must implement.

Design goals
============
1. **Provider-agnostic public API** - callers interact exclusively via
    `generate_response()` passing domain models (`Message`,
    `GenerationOptions`). They never touch provider-specific payloads.
2. **Validated before sent** - `generate_response()` runs `validate_config()`
    and refuses to touch the network when it fails. Adapters implement
    `_invoke()` and can rely on a complete configuration.
3. **One transport** - every adapter issues HTTP through `_make_request()`,
    which owns the timeout, the rate-limit gate and the rate-limit header
    bookkeeping of the instance.

Nothing is retried here; see :mod:`llm_relay.core.retry` for an opt-in,
caller-side helper.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from llm_relay.core.exceptions import (
    ConfigurationError,
    LLMRelayError,
    MalformedResponseError,
    NetworkError,
    ProviderAPIError,
    RequestTimeoutError,
)
from llm_relay.core.settings import STORAGE_PREFIX, default_timeout_ms, env_api_key
from llm_relay.core.storage import InMemoryStore, KeyValueStore
from llm_relay.core.transport import check_rate_limit, parse_error_response, record_response
from llm_relay.core.types import (
    ConnectionTestResult,
    GenerationOptions,
    GenerationResponse,
    Message,
    ModelInfo,
    ProviderConfig,
    RateLimitState,
    Role,
    ValidationResult,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = 'Respond with exactly: "Connection successful"'

NETWORK_ERROR_MESSAGE = (
    'Network error: Unable to reach the API at {url}. Please check the API endpoint URL '
    'and that the server is reachable (browser-hosted callers may also be blocked by CORS).'
)


def elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


class BaseProvider(ABC):
    """Provider-independent LLM client interface.

    Concrete adapters must supply :attr:`name`, :attr:`display_name` and
    :meth:`_invoke`; the class itself cannot be instantiated.
    """

    #: Applied to every config field the caller leaves unset.
    default_config: ClassVar[Mapping[str, Any]] = {}
    #: Environment variables consulted when no key is stored or configured.
    api_key_env: ClassVar[tuple[str, ...]] = ()
    missing_api_key_message: ClassVar[str] = 'API key is required but not configured'
    missing_base_url_message: ClassVar[str] = 'Base URL is required'

    # ---------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------

    def __init__(
        self,
        config: ProviderConfig | Mapping[str, Any] | None = None,
        *,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Merge *config* over the adapter defaults.

        Parameters
        ----------
        config
            Caller settings. Unset or ``None`` fields fall back to
            :attr:`default_config`, then to :class:`ProviderConfig` defaults.
        store
            Where the API key lives. A private in-memory store is used if
            omitted.
        http_client
            Optional shared ``httpx.AsyncClient`` (tests inject one backed by
            ``httpx.MockTransport``). When omitted a short-lived client is
            opened per request.

        """
        if isinstance(config, ProviderConfig):
            supplied = config.model_dump(exclude_unset=True)
        else:
            supplied = dict(config or {})
        supplied = {key: value for key, value in supplied.items() if value is not None}

        defaults = ProviderConfig.model_validate({'timeout_ms': default_timeout_ms(), **self.default_config})
        self._config: ProviderConfig = defaults.with_updates(**supplied)
        self._store: KeyValueStore = store if store is not None else InMemoryStore()
        self._http_client = http_client
        self._rate_limit = RateLimitState()

    # ------------------------------------------------------------------
    # Identity and capabilities
    # ------------------------------------------------------------------

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable machine identifier, e.g. ``"claude"``."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable label, e.g. ``"Anthropic Claude"``."""

    def is_local(self) -> bool:
        return False

    def requires_api_key(self) -> bool:
        return True

    def requires_base_url(self) -> bool:
        return False

    def supports_streaming(self) -> bool:
        return False

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def rate_limit(self) -> RateLimitState:
        return self._rate_limit

    # ------------------------------------------------------------------
    # API key handling
    # ------------------------------------------------------------------

    @property
    def api_key_storage_key(self) -> str:
        return f'{STORAGE_PREFIX}{self.name}_api_key'

    def get_api_key(self) -> str | None:
        """Stored key, else the configured key, else the environment."""
        stored = self._store.get(self.api_key_storage_key)
        if stored:
            return stored
        configured = (self._config.api_key or '').strip()
        return configured or env_api_key(*self.api_key_env)

    def set_api_key(self, api_key: str | None) -> None:
        """Store *api_key*; blank input clears the stored key instead."""
        if api_key and api_key.strip():
            self._store.set(self.api_key_storage_key, api_key.strip())
        else:
            self._store.delete(self.api_key_storage_key)

    # ------------------------------------------------------------------
    # Catalog and formatting
    # ------------------------------------------------------------------

    def get_available_models(self) -> list[ModelInfo]:
        """Static catalog. Empty means "ask the backend instead"."""
        return []

    def format_messages(self, messages: Sequence[Message]) -> Any:
        """OpenAI-shape passthrough; vendor adapters restructure."""
        return [message.to_dict() for message in messages]

    # ------------------------------------------------------------------
    # Public async API
    # ------------------------------------------------------------------

    async def generate_response(
        self,
        messages: Sequence[Message | Mapping[str, Any]],
        options: GenerationOptions | Mapping[str, Any] | None = None,
    ) -> GenerationResponse:
        """Generate a completion.

        Subclasses **must not** override this - override `_invoke()` instead.

        Raises
        ------
        ConfigurationError
            If :meth:`validate_config` fails. No request is made.

        """
        validation = self.validate_config()
        if not validation.valid:
            raise ConfigurationError(
                f'Configuration error: {", ".join(validation.errors)}',
                errors=validation.errors,
            )

        normalized = [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]
        if isinstance(options, GenerationOptions):
            bound_options = options
        else:
            bound_options = GenerationOptions.model_validate(options or {})

        return await self._invoke(normalized, bound_options)

    async def test_connection(self) -> ConnectionTestResult:
        """Send a tiny deterministic prompt and report the outcome.

        Never raises: every failure becomes ``success=False``.
        """
        started = time.perf_counter()
        try:
            await self.generate_response(
                [Message(role=Role.user, content=CONNECTION_TEST_PROMPT)],
                GenerationOptions(max_tokens=50, temperature=0),
            )
        except Exception as exc:  # noqa: BLE001
            logger.info('Connection test for %s failed: %s', self.name, exc)
            return ConnectionTestResult(
                success=False,
                message=self._format_error_message(exc),
                latency_ms=elapsed_ms(started),
            )

        latency_ms = elapsed_ms(started)
        return ConnectionTestResult(
            success=True,
            message=self._connection_success_message(latency_ms),
            model=self._config.model,
            latency_ms=latency_ms,
        )

    def validate_config(self) -> ValidationResult:
        errors: list[str] = []

        if self.requires_base_url() and not (self._config.base_url or '').strip():
            errors.append(self.missing_base_url_message)

        if not (self._config.model or '').strip():
            errors.append('Model is not specified')

        if self.requires_api_key() and not self.get_api_key():
            errors.append(self.missing_api_key_message)

        return ValidationResult(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Methods to implement in concrete adapters
    # ------------------------------------------------------------------

    @abstractmethod
    async def _invoke(self, messages: list[Message], options: GenerationOptions) -> GenerationResponse:
        """Provider-specific request/response round trip (to be overridden)."""

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _make_request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one HTTP call under the rate-limit gate and the timeout.

        The raw response is returned whatever its status; rate-limit state is
        updated before it is handed back.
        """
        check_rate_limit(self._rate_limit, time.time())

        timeout_ms = self._config.timeout_ms
        logger.debug('%s %s (%s)', method, url, self.name)
        try:
            response = await asyncio.wait_for(
                self._send(method, url, headers=headers, json=json, params=params),
                timeout=timeout_ms / 1000,
            )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeoutError(f'Request timed out after {timeout_ms}ms') from exc
        except httpx.TransportError as exc:
            raise NetworkError(NETWORK_ERROR_MESSAGE.format(url=url)) from exc

        record_response(self._rate_limit, response.headers, time.time())
        logger.debug('%s %s -> %s', method, url, response.status_code)
        return response

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None,
        json: Any,
        params: Mapping[str, str] | None,
    ) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, headers=headers, json=json, params=params)
        async with httpx.AsyncClient(timeout=self._config.timeout_ms / 1000) as client:
            return await client.request(method, url, headers=headers, json=json, params=params)

    async def _send_checked(self, method: str, url: str, **kwargs: Any) -> Any:
        """`_make_request()` + status check + JSON decoding."""
        response = await self._make_request(method, url, **kwargs)
        if not response.is_success:
            raise self._parse_error_response(response)
        return self._decode_json(response)

    def _parse_error_response(self, response: httpx.Response) -> ProviderAPIError:
        """Classify a failed response. Vendors wrap this to rewrite messages."""
        return parse_error_response(response)

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError('Invalid response format: body is not valid JSON') from exc

    # ------------------------------------------------------------------
    # Helpers shared by adapters
    # ------------------------------------------------------------------

    def _format_error_message(self, error: BaseException) -> str:
        if isinstance(error, LLMRelayError):
            return error.message
        return str(error) or 'An unknown error occurred'

    def _connection_success_message(self, latency_ms: int) -> str:
        return f'Connection successful! Response time: {latency_ms}ms'

    @staticmethod
    def _default_headers() -> dict[str, str]:
        return {'Content-Type': 'application/json'}

    @staticmethod
    def _normalize_base_url(url: str | None) -> str:
        return (url or '').strip().rstrip('/')

    @property
    def base_url(self) -> str:
        return self._normalize_base_url(self._config.base_url)

    def _max_tokens(self, options: GenerationOptions) -> int:
        return options.max_tokens or self._config.max_tokens

    def _temperature(self, options: GenerationOptions) -> float:
        return options.temperature if options.temperature is not None else self._config.temperature

    # ------------------------------------------------------------------
    # Helper - string representation
    # ------------------------------------------------------------------

    def __repr__(self) -> str:  # pragma: no cover - cosmetic
        return f'<{self.__class__.__name__} model={self._config.model!r}>'
