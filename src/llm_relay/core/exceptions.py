"""core.exceptions

Centralised exception hierarchy for *llm_relay*.

Each error carries an `http_status` attribute so that upper layers (REST API
controllers, FastAPI exception handlers, etc.) can translate exceptions to
appropriate HTTP responses *without* scattering status-code logic throughout
business code.

Errors raised for a failed upstream HTTP exchange derive from
:class:`ProviderAPIError` and also remember the upstream ``status_code`` and
the parsed response ``body``.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Any, ClassVar, Self

if TYPE_CHECKING:
    from collections.abc import Mapping


# ---------------------------------------------------------------------------
# Base mixin with HTTP status information
# ---------------------------------------------------------------------------


class LLMRelayError(Exception):
    """Base class for all *llm_relay* domain errors."""

    #: Default HTTP status if not overridden by subclass.
    http_status: ClassVar[HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)

    @property
    def message(self) -> str:
        return str(self)

    def to_json(self) -> dict[str, dict[str, str]]:
        """Serialisable ``{"error": {"type", "message"}}`` body for API responses."""
        return {'error': {'type': self.__class__.__name__, 'message': str(self)}}


# ---------------------------------------------------------------------------
# Local (pre-flight) errors
# ---------------------------------------------------------------------------


class ConfigurationError(LLMRelayError):
    """Missing key, model or base URL. Raised before any network call."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_REQUEST  # 400

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = list(errors or [])


class ProviderNotFoundError(LLMRelayError):
    """Raised when `ProviderRegistry` cannot find a requested provider key."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.NOT_IMPLEMENTED  # 501


# ---------------------------------------------------------------------------
# Upstream HTTP errors
# ---------------------------------------------------------------------------


class ProviderAPIError(LLMRelayError):
    """Upstream provider answered with a non-success status."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def with_message(self, message: str) -> Self:
        """Return a copy of this error (same class and status) with *message*."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.args = (message,)
        return clone


class AuthenticationError(ProviderAPIError):
    """HTTP 401/403. Never retried automatically."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.UNAUTHORIZED  # 401


class EndpointNotFoundError(ProviderAPIError):
    """HTTP 404, which almost always means a misconfigured base URL."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.NOT_FOUND  # 404


class RateLimitError(ProviderAPIError):
    """HTTP 429, or refused locally while a rate-limit window is active."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.TOO_MANY_REQUESTS  # 429

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: float | None = None,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body)
        self.retry_after = retry_after


class ServerError(ProviderAPIError):
    """HTTP >= 500, including vendor "overloaded" codes such as 529."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502


# ---------------------------------------------------------------------------
# Transport-level errors
# ---------------------------------------------------------------------------


class RequestTimeoutError(LLMRelayError, TimeoutError):
    """The request exceeded the adapter's configured timeout."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.GATEWAY_TIMEOUT  # 504


class NetworkError(LLMRelayError, ConnectionError):
    """DNS, connection refused, TLS or proxy failure before any response."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.SERVICE_UNAVAILABLE  # 503


# ---------------------------------------------------------------------------
# Response-shape errors
# ---------------------------------------------------------------------------


class MalformedResponseError(LLMRelayError):
    """Response parsed but lacks the expected shape."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502


class ContentBlockedError(MalformedResponseError):
    """The vendor refused to produce content (prompt or output filtered)."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.UNPROCESSABLE_ENTITY  # 422


HTTP_STATUS_MAP: Mapping[type[LLMRelayError], HTTPStatus] = {
    ConfigurationError: ConfigurationError.http_status,
    ProviderNotFoundError: ProviderNotFoundError.http_status,
    ProviderAPIError: ProviderAPIError.http_status,
    AuthenticationError: AuthenticationError.http_status,
    EndpointNotFoundError: EndpointNotFoundError.http_status,
    RateLimitError: RateLimitError.http_status,
    ServerError: ServerError.http_status,
    RequestTimeoutError: RequestTimeoutError.http_status,
    NetworkError: NetworkError.http_status,
    MalformedResponseError: MalformedResponseError.http_status,
    ContentBlockedError: ContentBlockedError.http_status,
}
