from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from llm_relay.adapters.gemini_adapter import PERMISSIVE_SAFETY_SETTINGS, GeminiProvider
from llm_relay.core.exceptions import (
    AuthenticationError,
    ContentBlockedError,
    MalformedResponseError,
    ProviderAPIError,
)
from llm_relay.core.types import Message

GEMINI_REPLY = {
    'candidates': [{'content': {'parts': [{'text': 'Hi'}, {'text': ' you'}], 'role': 'model'}, 'finishReason': 'STOP'}],
    'usageMetadata': {'promptTokenCount': 4, 'candidatesTokenCount': 2, 'totalTokenCount': 6},
}


def _client(requests: list[httpx.Request], payload: Any, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


USER_HI = [Message(role='user', content='hi')]


def test_format_messages_uses_model_role() -> None:
    formatted = GeminiProvider().format_messages(
        [
            Message(role='system', content='rules'),
            Message(role='user', content='q'),
            Message(role='assistant', content='a'),
        ],
    )
    assert formatted == {
        'systemInstruction': {'parts': [{'text': 'rules'}]},
        'contents': [
            {'role': 'user', 'parts': [{'text': 'q'}]},
            {'role': 'model', 'parts': [{'text': 'a'}]},
        ],
    }


def test_format_messages_empty_conversation() -> None:
    formatted = GeminiProvider().format_messages([])
    assert formatted['systemInstruction'] is None
    assert formatted['contents'] == [{'role': 'user', 'parts': [{'text': 'Hello'}]}]


def test_format_messages_interleaved_system_messages() -> None:
    formatted = GeminiProvider().format_messages(
        [
            Message(role='system', content='s1'),
            Message(role='assistant', content='x'),
            Message(role='assistant', content='y'),
            Message(role='system', content='s2'),
            Message(role='user', content='u1'),
            Message(role='user', content='u2'),
            Message(role='system', content='s3'),
            Message(role='assistant', content='z'),
        ],
    )
    assert formatted == {
        'systemInstruction': {'parts': [{'text': 's1\n\ns2\n\ns3'}]},
        'contents': [
            {'role': 'user', 'parts': [{'text': '.'}]},
            {'role': 'model', 'parts': [{'text': 'x\n\ny'}]},
            {'role': 'user', 'parts': [{'text': 'u1\n\nu2'}]},
            {'role': 'model', 'parts': [{'text': 'z'}]},
        ],
    }


@pytest.mark.asyncio
async def test_generate_response(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('GOOGLE_API_KEY', 'g-key')
    requests: list[httpx.Request] = []
    provider = GeminiProvider(http_client=_client(requests, GEMINI_REPLY))

    reply = await provider.generate_response(USER_HI, {'top_p': 0.8, 'stop': ['x']})

    assert reply.content == 'Hi you'
    assert reply.finish_reason == 'STOP'
    assert reply.usage is not None
    assert reply.usage.total_tokens == 6  # noqa: PLR2004

    request = requests[0]
    assert request.url.path == '/v1beta/models/gemini-2.0-flash:generateContent'
    assert request.url.params['key'] == 'g-key'
    body = json.loads(request.content)
    assert body['generationConfig'] == {'maxOutputTokens': 8192, 'temperature': 0.7, 'topP': 0.8, 'stopSequences': ['x']}
    assert body['safetySettings'] == [dict(s) for s in PERMISSIVE_SAFETY_SETTINGS]
    assert 'systemInstruction' not in body


@pytest.mark.asyncio
async def test_safety_settings_can_be_overridden() -> None:
    strict = [{'category': 'HARM_CATEGORY_HARASSMENT', 'threshold': 'BLOCK_LOW_AND_ABOVE'}]
    requests: list[httpx.Request] = []
    provider = GeminiProvider(
        {'api_key': 'g-key', 'additional_options': {'safety_settings': strict}},
        http_client=_client(requests, GEMINI_REPLY),
    )

    await provider.generate_response(USER_HI)
    await provider.generate_response(USER_HI, {'safety_settings': []})

    assert json.loads(requests[0].content)['safetySettings'] == strict
    # 空リストはブロックごと省略する
    assert 'safetySettings' not in json.loads(requests[1].content)


@pytest.mark.asyncio
async def test_blocked_prompt() -> None:
    payload = {'promptFeedback': {'blockReason': 'SAFETY'}}
    provider = GeminiProvider({'api_key': 'g-key'}, http_client=_client([], payload))
    with pytest.raises(ContentBlockedError, match='Content blocked: SAFETY'):
        await provider.generate_response(USER_HI)


@pytest.mark.asyncio
async def test_blocked_response() -> None:
    payload = {'candidates': [{'finishReason': 'SAFETY'}]}
    provider = GeminiProvider({'api_key': 'g-key'}, http_client=_client([], payload))
    with pytest.raises(ContentBlockedError, match='Response blocked by safety filters'):
        await provider.generate_response(USER_HI)


@pytest.mark.asyncio
async def test_no_candidates() -> None:
    provider = GeminiProvider({'api_key': 'g-key'}, http_client=_client([], {'candidates': []}))
    with pytest.raises(MalformedResponseError, match='No response generated'):
        await provider.generate_response(USER_HI)


@pytest.mark.asyncio
async def test_bad_key_reported_as_400_is_authentication_error() -> None:
    payload = {'error': {'code': 400, 'message': 'API key not valid. Please pass a valid API key.', 'status': 'INVALID_ARGUMENT'}}
    provider = GeminiProvider({'api_key': 'nope'}, http_client=_client([], payload, status_code=400))
    with pytest.raises(AuthenticationError, match='Google AI API key') as excinfo:
        await provider.generate_response(USER_HI)
    assert excinfo.value.status_code == 400  # noqa: PLR2004


@pytest.mark.asyncio
async def test_other_400_carries_status() -> None:
    payload = {'error': {'code': 400, 'message': 'Bad temperature', 'status': 'INVALID_ARGUMENT'}}
    provider = GeminiProvider({'api_key': 'g-key'}, http_client=_client([], payload, status_code=400))
    with pytest.raises(ProviderAPIError, match=r'^\[INVALID_ARGUMENT\] Bad temperature$'):
        await provider.generate_response(USER_HI)


def test_missing_key_message() -> None:
    assert GeminiProvider().validate_config().errors == ['Google AI API key is required']
