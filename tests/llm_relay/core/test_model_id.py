from __future__ import annotations

import pytest

from llm_relay.core.model_id import ModelId, parse_model_id


def test_valid_parse_and_str() -> None:
    mid: ModelId = ModelId.parse('OpenAI:GPT-4o')
    assert mid.provider == 'openai'
    # モデル名の大文字小文字は保持する
    assert mid.model == 'GPT-4o'
    assert mid.raw == 'OpenAI:GPT-4o'
    assert str(mid) == 'openai:GPT-4o'


def test_only_first_colon_separates() -> None:
    mid = ModelId.parse('ollama:llama3.2:1b')
    assert mid.provider == 'ollama'
    assert mid.model == 'llama3.2:1b'


def test_slash_in_model_name() -> None:
    mid = parse_model_id('openrouter:anthropic/claude-sonnet-4')
    assert mid.provider == 'openrouter'
    assert mid.model == 'anthropic/claude-sonnet-4'


@pytest.mark.parametrize('bad_id', ['openai', 'openai-gpt4o', ':', 'openai:', ':gpt-4o', 'open ai:gpt-4o', 'openai:gpt 4o'])
def test_invalid_parse(bad_id: str) -> None:
    with pytest.raises(ValueError):  # noqa: PT011
        ModelId.parse(bad_id)


def test_function_alias() -> None:
    assert isinstance(parse_model_id('claude:claude-3-5-sonnet-20241022'), ModelId)
