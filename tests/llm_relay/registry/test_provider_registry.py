from __future__ import annotations

from collections.abc import Iterator

import pytest

# アダプタの自動登録を有効にする
import llm_relay.adapters  # noqa: F401
from llm_relay.core.abc import BaseProvider
from llm_relay.core.exceptions import ProviderNotFoundError
from llm_relay.core.types import GenerationOptions, GenerationResponse, Message, ProviderInfo
from llm_relay.registry.provider_registry import ProviderRegistry, provider_registry


class DummyAdapter(BaseProvider):
    @property
    def name(self) -> str:
        return 'dummy'

    @property
    def display_name(self) -> str:
        return 'Dummy'

    async def _invoke(self, messages: list[Message], options: GenerationOptions) -> GenerationResponse:  # noqa: ARG002
        return GenerationResponse(content='dummy')


@pytest.fixture
def reg() -> Iterator[ProviderRegistry]:
    registry = ProviderRegistry()
    yield registry
    registry.unregister('dummy')


def test_singleton() -> None:
    assert ProviderRegistry() is provider_registry


def test_register_and_fetch(reg: ProviderRegistry) -> None:
    reg.register('Dummy', DummyAdapter)
    assert 'dummy' in reg.available_providers()
    assert reg.get_adapter_cls('DUMMY') is DummyAdapter
    info = reg.get_info('dummy')
    assert info is not None
    assert info.display_name == 'Dummy'
    assert info.requires_api_key


def test_register_type_validation(reg: ProviderRegistry) -> None:
    with pytest.raises(TypeError):
        reg.register('bad', object)  # type: ignore[arg-type]
    assert not reg.has_provider('bad')


def test_unknown_provider_lists_available(reg: ProviderRegistry) -> None:
    with pytest.raises(ProviderNotFoundError, match='Unknown provider type: "no-such"') as excinfo:
        reg.get_adapter_cls('no-such')
    assert 'openai' in str(excinfo.value)


def test_bundled_providers_registered_in_order() -> None:
    bundled = ['claude', 'openai', 'gemini', 'lmstudio', 'ollama', 'openrouter', 'groq']
    assert [key for key in provider_registry.mapping() if key in bundled] == bundled


def test_bundled_metadata() -> None:
    ollama = provider_registry.get_info('ollama')
    assert ollama == ProviderInfo(
        display_name='Ollama',
        description='Run open-source models locally with Ollama - no API key needed',
        is_local=True,
        requires_api_key=False,
        default_base_url='http://localhost:11434/v1',
        website='https://ollama.ai/',
    )
    for key in ('claude', 'openai', 'gemini', 'openrouter', 'groq'):
        info = provider_registry.get_info(key)
        assert info is not None
        assert not info.is_local
        assert info.requires_api_key


def test_unregister(reg: ProviderRegistry) -> None:
    reg.register('dummy', DummyAdapter)
    reg.unregister('dummy')
    assert not reg.has_provider('dummy')
    reg.unregister('dummy')  # 二重削除は無視
