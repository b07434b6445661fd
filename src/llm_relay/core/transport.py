"""core.transport

Pure helpers behind :meth:`BaseProvider._make_request`:

* the **rate-limit gate** refusing new requests while a previously observed
  window is still active,
* interpretation of ``retry-after`` / ``x-ratelimit-*`` response headers,
* generic classification of a failed HTTP response into the error taxonomy.

Nothing here performs I/O; the adapter owns the HTTP client and the
:class:`~llm_relay.core.types.RateLimitState` it mutates.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

from llm_relay.core.exceptions import (
    AuthenticationError,
    EndpointNotFoundError,
    ProviderAPIError,
    RateLimitError,
    ServerError,
)

if TYPE_CHECKING:
    import httpx

    from llm_relay.core.types import RateLimitState

logger = logging.getLogger(__name__)

# A reset value above this is read as an absolute Unix timestamp rather than
# a number of seconds from now.
ABSOLUTE_TIMESTAMP_THRESHOLD = 1_000_000_000

# Raw (non-JSON) error bodies shorter than this are surfaced verbatim.
MAX_RAW_ERROR_LENGTH = 200

STATUS_MESSAGES: dict[int, str] = {
    401: 'Authentication failed. Please check your API key.',
    403: 'Access forbidden. Your API key may not have permission for this operation.',
    404: 'API endpoint not found. Please check the base URL configuration.',
    429: 'Rate limit exceeded. Please wait before making more requests.',
}


# ---------------------------------------------------------------------------
# Rate-limit gate
# ---------------------------------------------------------------------------


def check_rate_limit(state: RateLimitState, now: float) -> None:
    """Raise :class:`RateLimitError` if *state* still blocks requests at *now*."""
    if state.reset_time > now:
        wait_seconds = math.ceil(state.reset_time - now)
        raise RateLimitError(
            f'Rate limited. Please wait {wait_seconds} seconds.',
            retry_after=wait_seconds,
        )


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        try:
            return int(float(value.strip()))
        except ValueError:
            return None


def record_response(state: RateLimitState, headers: httpx.Headers, now: float) -> None:
    """Update *state* after any HTTP exchange (success or failure)."""
    state.last_request_time = now
    state.request_count += 1

    retry_after = _parse_int(headers.get('retry-after'))
    if retry_after is not None:
        state.reset_time = now + retry_after
        logger.warning('Provider asked to retry after %ss', retry_after)
        return

    if headers.get('x-ratelimit-remaining', '').strip() == '0':
        reset = _parse_int(headers.get('x-ratelimit-reset'))
        if reset is not None:
            state.reset_time = float(reset) if reset > ABSOLUTE_TIMESTAMP_THRESHOLD else now + reset
            logger.warning('Rate-limit quota exhausted; window resets at %.0f', state.reset_time)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def _extract_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    error = body.get('error')
    if isinstance(error, dict) and error.get('message'):
        return str(error['message'])
    for key in ('message', 'detail'):
        if body.get(key):
            return str(body[key])
    return None


def parse_error_response(response: httpx.Response) -> ProviderAPIError:
    """Turn a failed *response* into a classified :class:`ProviderAPIError`.

    Status-code classification always wins over whatever the body says.
    """
    status = response.status_code
    message = f'API error: {status} {response.reason_phrase}'.rstrip()
    body: Any = None

    text = response.text
    try:
        body = json.loads(text)
    except ValueError:
        if text and len(text) < MAX_RAW_ERROR_LENGTH:
            message = text
    else:
        message = _extract_message(body) or message

    if status in (401, 403):
        return AuthenticationError(STATUS_MESSAGES[status], status_code=status, body=body)
    if status == 404:
        return EndpointNotFoundError(STATUS_MESSAGES[status], status_code=status, body=body)
    if status == 429:
        retry_after = _parse_int(response.headers.get('retry-after'))
        return RateLimitError(STATUS_MESSAGES[status], retry_after=retry_after, status_code=status, body=body)
    if status >= 500:
        return ServerError(
            f'Server error ({status}). The API service may be experiencing issues.',
            status_code=status,
            body=body,
        )
    return ProviderAPIError(message, status_code=status, body=body)


def error_field(error: ProviderAPIError, field: str) -> str | None:
    """Return ``body['error'][field]`` of a parsed error, if present."""
    body = error.body
    if isinstance(body, dict) and isinstance(body.get('error'), dict):
        value = body['error'].get(field)
        return str(value) if value else None
    return None


def upstream_message(error: ProviderAPIError) -> str | None:
    """The human message the vendor put in the error body, if any."""
    return _extract_message(error.body)
