from __future__ import annotations

from typing import Any

import pytest

API_KEY_ENV_VARS = (
    'ANTHROPIC_API_KEY',
    'OPENAI_API_KEY',
    'GEMINI_API_KEY',
    'GOOGLE_API_KEY',
    'GROQ_API_KEY',
    'OPENROUTER_API_KEY',
    'LLM_RELAY_TIMEOUT_MS',
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # 開発者の環境変数がテスト結果に影響しないようにする
    for name in API_KEY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def chat_completion() -> dict[str, Any]:
    return {
        'model': 'gpt-4o',
        'choices': [{'message': {'role': 'assistant', 'content': 'hello'}, 'finish_reason': 'stop'}],
        'usage': {'prompt_tokens': 3, 'completion_tokens': 1, 'total_tokens': 4},
    }
