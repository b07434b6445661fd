from __future__ import annotations

import httpx
import pytest

from llm_relay.core.exceptions import (
    AuthenticationError,
    EndpointNotFoundError,
    ProviderAPIError,
    RateLimitError,
    ServerError,
)
from llm_relay.core.transport import check_rate_limit, error_field, parse_error_response, record_response
from llm_relay.core.types import RateLimitState

NOW = 1_700_000_000.0


def test_record_response_counts_every_exchange() -> None:
    state = RateLimitState()
    record_response(state, httpx.Headers(), NOW)
    record_response(state, httpx.Headers(), NOW + 1)
    assert state.request_count == 2  # noqa: PLR2004
    assert state.last_request_time == NOW + 1
    assert state.reset_time == 0.0


def test_retry_after_sets_reset_time() -> None:
    state = RateLimitState()
    record_response(state, httpx.Headers({'retry-after': '30'}), NOW)
    assert state.reset_time == NOW + 30


def test_exhausted_quota_with_relative_reset() -> None:
    state = RateLimitState()
    record_response(state, httpx.Headers({'x-ratelimit-remaining': '0', 'x-ratelimit-reset': '12'}), NOW)
    assert state.reset_time == NOW + 12


def test_exhausted_quota_with_absolute_reset() -> None:
    state = RateLimitState()
    absolute = int(NOW) + 45
    headers = httpx.Headers({'x-ratelimit-remaining': '0', 'x-ratelimit-reset': str(absolute)})
    record_response(state, headers, NOW)
    assert state.reset_time == float(absolute)


def test_remaining_quota_leaves_reset_untouched() -> None:
    state = RateLimitState()
    record_response(state, httpx.Headers({'x-ratelimit-remaining': '5', 'x-ratelimit-reset': '12'}), NOW)
    assert state.reset_time == 0.0


def test_retry_after_takes_precedence() -> None:
    state = RateLimitState()
    headers = httpx.Headers({'retry-after': '5', 'x-ratelimit-remaining': '0', 'x-ratelimit-reset': '100'})
    record_response(state, headers, NOW)
    assert state.reset_time == NOW + 5


def test_gate_blocks_until_reset() -> None:
    state = RateLimitState(reset_time=NOW + 2.2)
    with pytest.raises(RateLimitError, match='Please wait 3 seconds') as excinfo:
        check_rate_limit(state, NOW)
    assert excinfo.value.retry_after == 3  # noqa: PLR2004

    # リセット時刻を過ぎたら通す
    check_rate_limit(state, NOW + 3)


def _response(status: int, **kwargs: object) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request('POST', 'https://api.example.com/x'), **kwargs)


@pytest.mark.parametrize('status', [401, 403])
def test_auth_statuses_ignore_body(status: int) -> None:
    error = parse_error_response(_response(status, json={'error': {'message': 'something else'}}))
    assert isinstance(error, AuthenticationError)
    assert error.status_code == status
    assert 'something else' not in error.message


def test_not_found_points_at_base_url() -> None:
    error = parse_error_response(_response(404, text='nope'))
    assert isinstance(error, EndpointNotFoundError)
    assert 'base URL' in error.message


def test_too_many_requests_reads_retry_after() -> None:
    error = parse_error_response(_response(429, headers={'retry-after': '9'}))
    assert isinstance(error, RateLimitError)
    assert error.retry_after == 9  # noqa: PLR2004


def test_server_error() -> None:
    error = parse_error_response(_response(502, text='<html>bad gateway</html>'))
    assert isinstance(error, ServerError)
    assert error.message == 'Server error (502). The API service may be experiencing issues.'


def test_other_status_uses_json_message() -> None:
    error = parse_error_response(_response(400, json={'error': {'message': 'bad field', 'code': 'invalid'}}))
    assert type(error) is ProviderAPIError
    assert error.message == 'bad field'
    assert error_field(error, 'code') == 'invalid'


def test_other_status_uses_short_raw_text() -> None:
    error = parse_error_response(_response(400, text='plain failure'))
    assert error.message == 'plain failure'


def test_other_status_falls_back_to_status_line() -> None:
    error = parse_error_response(_response(400, text='x' * 500))
    assert error.message == 'API error: 400 Bad Request'
