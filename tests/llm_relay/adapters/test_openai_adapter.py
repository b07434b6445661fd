from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from llm_relay.adapters.openai_adapter import OpenAIProvider
from llm_relay.core.exceptions import EndpointNotFoundError, MalformedResponseError
from llm_relay.core.types import Message


def _client(requests: list[httpx.Request], payload: Any, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


MESSAGES = [Message(role='system', content='be brief'), Message(role='user', content='hi')]


@pytest.mark.asyncio
async def test_end_to_end_completion(chat_completion: dict[str, Any]) -> None:
    requests: list[httpx.Request] = []
    provider = OpenAIProvider({'api_key': 'sk-test'}, http_client=_client(requests, chat_completion))

    reply = await provider.generate_response(MESSAGES, {'stop': ['\n'], 'top_p': 0.5})

    assert reply.content == 'hello'
    assert reply.finish_reason == 'stop'
    assert reply.usage is not None
    assert (reply.usage.prompt_tokens, reply.usage.completion_tokens, reply.usage.total_tokens) == (3, 1, 4)

    request = requests[0]
    assert str(request.url) == 'https://api.openai.com/v1/chat/completions'
    assert request.headers['authorization'] == 'Bearer sk-test'
    body = json.loads(request.content)
    assert body == {
        'model': 'gpt-4o',
        'messages': [{'role': 'system', 'content': 'be brief'}, {'role': 'user', 'content': 'hi'}],
        'max_tokens': 4096,
        'temperature': 0.7,
        'stop': ['\n'],
        'top_p': 0.5,
    }


@pytest.mark.asyncio
async def test_content_parts_are_flattened() -> None:
    payload = {
        'choices': [
            {'message': {'content': [{'type': 'text', 'text': 'a'}, {'type': 'image'}, {'type': 'text', 'text': 'b'}]}},
        ],
    }
    provider = OpenAIProvider({'api_key': 'sk-test'}, http_client=_client([], payload))
    reply = await provider.generate_response(MESSAGES)
    assert reply.content == 'ab'
    assert reply.usage is None


@pytest.mark.asyncio
@pytest.mark.parametrize('payload', [{'choices': []}, {'object': 'chat.completion'}, {'choices': [{'index': 0}]}])
async def test_missing_choices_is_malformed(payload: dict[str, Any]) -> None:
    provider = OpenAIProvider({'api_key': 'sk-test'}, http_client=_client([], payload))
    with pytest.raises(MalformedResponseError, match='missing choices or message'):
        await provider.generate_response(MESSAGES)


@pytest.mark.asyncio
async def test_reasoning_models_drop_sampling_parameters(chat_completion: dict[str, Any]) -> None:
    requests: list[httpx.Request] = []
    provider = OpenAIProvider({'api_key': 'sk-test', 'model': 'o1-mini'}, http_client=_client(requests, chat_completion))

    await provider.generate_response(MESSAGES, {'top_p': 0.9, 'stream': True, 'seed': 7, 'json_mode': True})

    body = json.loads(requests[0].content)
    for key in ('temperature', 'top_p', 'stream'):
        assert key not in body
    assert body['seed'] == 7  # noqa: PLR2004
    assert body['response_format'] == {'type': 'json_object'}


@pytest.mark.asyncio
async def test_fetch_available_models() -> None:
    payload = {'data': [{'id': 'gpt-4o', 'object': 'model'}, {'id': 'gpt-4o-mini', 'context_window': 128000}]}
    requests: list[httpx.Request] = []
    provider = OpenAIProvider({'api_key': 'sk-test'}, http_client=_client(requests, payload))

    models = await provider.fetch_available_models()

    assert str(requests[0].url) == 'https://api.openai.com/v1/models'
    assert [m.id for m in models] == ['gpt-4o', 'gpt-4o-mini']
    assert models[0].name == 'gpt-4o'
    assert models[1].context_window == 128000  # noqa: PLR2004


@pytest.mark.asyncio
async def test_fetch_available_models_failure_is_empty() -> None:
    provider = OpenAIProvider({'api_key': 'sk-test'}, http_client=_client([], {}, status_code=500))
    assert await provider.fetch_available_models() == []


@pytest.mark.asyncio
async def test_wrong_base_url_surfaces_not_found() -> None:
    provider = OpenAIProvider(
        {'api_key': 'sk-test', 'base_url': 'https://api.openai.com/'},
        http_client=_client([], {'error': {'message': 'Unknown path'}}, status_code=404),
    )
    with pytest.raises(EndpointNotFoundError, match='check the base URL'):
        await provider.generate_response(MESSAGES)


def test_capabilities() -> None:
    provider = OpenAIProvider()
    assert provider.name == 'openai'
    assert not provider.is_local()
    assert provider.requires_api_key()
    assert provider.supports_streaming()
    assert any(m.id == 'o1-mini' for m in provider.get_available_models())
    result = provider.validate_config()
    assert result.errors == ['OpenAI API key is required']
