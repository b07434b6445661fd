"""core.settings

Environment-derived configuration.

A ``.env`` file in the working directory (if any) is loaded once on import so
that API keys such as ``OPENAI_API_KEY`` can be supplied without touching the
key-value store.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

#: Prefix for every key this package writes to a KeyValueStore.
STORAGE_PREFIX = 'llm_relay_'

DEFAULT_TIMEOUT_MS = 60_000


def env_api_key(*names: str) -> str | None:
    """Return the first non-blank environment variable among *names*."""
    for name in names:
        value = os.getenv(name, '').strip()
        if value:
            return value
    return None


def default_timeout_ms() -> int:
    """``LLM_RELAY_TIMEOUT_MS`` if set to a positive integer, else 60 s."""
    raw = os.getenv('LLM_RELAY_TIMEOUT_MS')
    if not raw:
        return DEFAULT_TIMEOUT_MS
    try:
        value = int(raw)
    except ValueError:
        logger.warning('Ignoring non-integer LLM_RELAY_TIMEOUT_MS=%r', raw)
        return DEFAULT_TIMEOUT_MS
    return value if value > 0 else DEFAULT_TIMEOUT_MS
