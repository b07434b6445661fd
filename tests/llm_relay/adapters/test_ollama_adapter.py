from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from llm_relay.adapters.ollama_adapter import OLLAMA_MODELS, OllamaProvider, format_model_name
from llm_relay.core.types import Message


def _routes(routes: dict[str, Any], requests: list[httpx.Request] | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        reply = routes.get(request.url.path)
        if reply is None:
            return httpx.Response(404, text='not found')
        if isinstance(reply, Exception):
            raise reply
        return httpx.Response(200, json=reply)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _tags(*names: str) -> dict[str, Any]:
    return {'models': [{'name': name, 'size': 1} for name in names]}


def test_format_model_name() -> None:
    assert format_model_name('deepseek-r1:14b') == 'Deepseek R1'
    assert format_model_name('llama3.2') == 'Llama3.2'


def test_native_base_url_strips_openai_suffix() -> None:
    assert OllamaProvider().native_base_url == 'http://localhost:11434'
    assert OllamaProvider({'base_url': 'http://gpu-box:11434/'}).native_base_url == 'http://gpu-box:11434'


@pytest.mark.asyncio
async def test_generate_with_runtime_options(chat_completion: dict[str, Any]) -> None:
    requests: list[httpx.Request] = []
    provider = OllamaProvider(http_client=_routes({'/v1/chat/completions': chat_completion}, requests))

    await provider.generate_response(
        [Message(role='user', content='hi')],
        {'num_ctx': 8192, 'seed': 1, 'keep_alive': '5m'},
    )

    body = json.loads(requests[0].content)
    assert body['options'] == {'num_ctx': 8192, 'seed': 1}
    assert body['keep_alive'] == '5m'
    assert body['model'] == 'llama3.2'


@pytest.mark.asyncio
async def test_fetch_models_from_tags() -> None:
    requests: list[httpx.Request] = []
    provider = OllamaProvider(http_client=_routes({'/api/tags': _tags('llama3.2:latest', 'deepseek-r1:14b')}, requests))

    models = await provider.fetch_available_models()

    assert str(requests[0].url) == 'http://localhost:11434/api/tags'
    assert [(m.id, m.name) for m in models] == [('llama3.2:latest', 'Llama3.2'), ('deepseek-r1:14b', 'Deepseek R1')]


@pytest.mark.asyncio
async def test_fetch_models_falls_back_to_catalog() -> None:
    provider = OllamaProvider(http_client=_routes({'/api/tags': httpx.ConnectError('refused')}))
    assert await provider.fetch_available_models() == list(OLLAMA_MODELS)


@pytest.mark.asyncio
async def test_pull_model() -> None:
    requests: list[httpx.Request] = []
    provider = OllamaProvider(http_client=_routes({'/api/pull': {'status': 'success'}}, requests))

    assert await provider.pull_model('phi3')
    assert json.loads(requests[0].content) == {'name': 'phi3', 'stream': False}

    broken = OllamaProvider(http_client=_routes({}))
    assert not await broken.pull_model('phi3')


@pytest.mark.asyncio
async def test_connection_server_down() -> None:
    result = await OllamaProvider(http_client=_routes({'/api/tags': httpx.ConnectError('refused')})).test_connection()
    assert not result.success
    assert 'ollama serve' in result.message


@pytest.mark.asyncio
async def test_connection_no_models() -> None:
    result = await OllamaProvider(http_client=_routes({'/api/tags': _tags()})).test_connection()
    assert not result.success
    assert 'ollama pull llama3.2' in result.message


@pytest.mark.asyncio
async def test_connection_model_not_installed() -> None:
    names = [f'model-{i}' for i in range(7)]
    result = await OllamaProvider(http_client=_routes({'/api/tags': _tags(*names)})).test_connection()
    assert not result.success
    assert result.message == (
        'Model "llama3.2" is not installed. Available models: model-0, model-1, model-2, model-3, model-4...'
    )


@pytest.mark.asyncio
async def test_connection_success_with_tagged_install(chat_completion: dict[str, Any]) -> None:
    routes = {'/api/tags': _tags('llama3.2:latest'), '/v1/chat/completions': chat_completion}
    result = await OllamaProvider(http_client=_routes(routes)).test_connection()
    assert result.success
