"""registry.client_factory

Factory responsible for turning a provider identifier (or a
``"<provider>:<model>"`` string) into a fully initialised adapter instance,
and for persisting the user's provider choices in a key-value store.

Persisted keys (values are JSON unless noted):

* ``llm_relay_active_provider`` - active provider id (raw string)
* ``llm_relay_provider_configs`` - ``{provider: config}`` with API keys stripped
* ``llm_relay_last_models`` - ``{provider: model_id}``

API keys never travel through this module; adapters store them under their
own namespaced key (see :meth:`BaseProvider.set_api_key`).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

# Importing the package registers every bundled adapter.
import llm_relay.adapters  # noqa: F401
from llm_relay.core.exceptions import ProviderNotFoundError
from llm_relay.core.model_id import ModelId, parse_model_id
from llm_relay.core.settings import STORAGE_PREFIX
from llm_relay.core.storage import InMemoryStore, KeyValueStore
from llm_relay.core.types import ProviderConfig, ProviderInfo, ProviderStatus
from llm_relay.registry.provider_registry import ProviderRegistry, provider_registry

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from llm_relay.core.abc import BaseProvider

logger = logging.getLogger(__name__)

ACTIVE_PROVIDER_KEY = f'{STORAGE_PREFIX}active_provider'
PROVIDER_CONFIGS_KEY = f'{STORAGE_PREFIX}provider_configs'
LAST_MODELS_KEY = f'{STORAGE_PREFIX}last_models'

DEFAULT_ACTIVE_PROVIDER = 'openrouter'


class ProviderFactory:
    """Create configured adapters and persist provider preferences.

    Parameters
    ----------
    store
        Key-value store shared with every adapter this factory builds (so
        API keys set on one instance are visible to the next).
    registry
        Adapter catalog; defaults to the process-wide registry.
    http_client
        Optional ``httpx.AsyncClient`` handed to every adapter created.

    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        registry: ProviderRegistry | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store: KeyValueStore = store if store is not None else InMemoryStore()
        self._registry: ProviderRegistry = registry or provider_registry
        self._http_client = http_client

    @property
    def store(self) -> KeyValueStore:
        return self._store

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def create_provider(
        self,
        provider_type: str,
        config: ProviderConfig | Mapping[str, Any] | None = None,
    ) -> BaseProvider:
        """Return a new adapter for *provider_type*.

        Raises
        ------
        ProviderNotFoundError
            If *provider_type* is not registered.

        """
        adapter_class = self._registry.get_adapter_cls(provider_type)

        if isinstance(config, ProviderConfig):
            settings = config.model_dump(exclude_unset=True)
        else:
            settings = dict(config or {})

        # Fill in the default base URL when the caller omitted one
        info = self._registry.get_info(provider_type)
        if not settings.get('base_url') and info is not None and info.default_base_url:
            settings['base_url'] = info.default_base_url

        return adapter_class(settings, store=self._store, http_client=self._http_client)

    def create_configured_provider(
        self,
        provider_type: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> BaseProvider:
        """Adapter built from saved config, then last-used model, then *overrides*."""
        settings: dict[str, Any] = dict(self.get_provider_config(provider_type))
        last_model = self.get_last_model(provider_type)
        if last_model:
            settings['model'] = last_model
        settings.update(overrides or {})
        return self.create_provider(provider_type, settings)

    def initialize_client(self, model_id: str | ModelId, **overrides: Any) -> BaseProvider:
        """Return a configured adapter for a ``"<provider>:<model>"`` identifier."""
        # Normalize input: convert string to ModelId if needed
        model_identifier = parse_model_id(model_id) if isinstance(model_id, str) else model_id
        return self.create_configured_provider(
            model_identifier.provider,
            {**overrides, 'model': model_identifier.model},
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def get_provider_names(self) -> list[str]:
        return list(self._registry.mapping())

    def get_provider_list(self) -> list[dict[str, Any]]:
        return [{'type': key, **info.model_dump()} for key, info in self._registry.info_mapping().items()]

    def get_local_providers(self) -> list[dict[str, Any]]:
        return [entry for entry in self.get_provider_list() if entry['is_local']]

    def get_cloud_providers(self) -> list[dict[str, Any]]:
        return [entry for entry in self.get_provider_list() if not entry['is_local']]

    def has_provider(self, provider_type: str) -> bool:
        return self._registry.has_provider(provider_type)

    def get_provider_info(self, provider_type: str) -> ProviderInfo | None:
        return self._registry.get_info(provider_type)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_json(self, key: str) -> dict[str, Any]:
        raw = self._store.get(key)
        if not raw:
            return {}
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning('Ignoring corrupt JSON stored under %s', key)
            return {}
        return value if isinstance(value, dict) else {}

    def _write_json(self, key: str, value: Mapping[str, Any]) -> None:
        self._store.set(key, json.dumps(value))

    def save_active_provider(self, provider_type: str) -> None:
        if not self.has_provider(provider_type):
            raise ProviderNotFoundError(f'Unknown provider type: "{provider_type}"')
        self._store.set(ACTIVE_PROVIDER_KEY, provider_type)

    def get_active_provider(self) -> str:
        return self._store.get(ACTIVE_PROVIDER_KEY) or DEFAULT_ACTIVE_PROVIDER

    def save_provider_config(self, provider_type: str, config: ProviderConfig | Mapping[str, Any]) -> None:
        """Persist *config* for *provider_type*, never including the API key."""
        if isinstance(config, ProviderConfig):
            safe_config = config.model_dump(exclude_unset=True, exclude={'api_key'})
        else:
            safe_config = {key: value for key, value in config.items() if key != 'api_key'}

        configs = self.get_provider_configs()
        configs[provider_type] = safe_config
        self._write_json(PROVIDER_CONFIGS_KEY, configs)

    def get_provider_configs(self) -> dict[str, dict[str, Any]]:
        return self._read_json(PROVIDER_CONFIGS_KEY)

    def get_provider_config(self, provider_type: str) -> dict[str, Any]:
        config = self.get_provider_configs().get(provider_type)
        return dict(config) if isinstance(config, dict) else {}

    def save_last_model(self, provider_type: str, model: str) -> None:
        models = self.get_last_models()
        models[provider_type] = model
        self._write_json(LAST_MODELS_KEY, models)

    def get_last_model(self, provider_type: str) -> str | None:
        return self.get_last_models().get(provider_type) or None

    def get_last_models(self) -> dict[str, str]:
        return self._read_json(LAST_MODELS_KEY)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def test_all_providers(self) -> list[ProviderStatus]:
        """Validate and connection-test every registered provider in turn.

        One provider failing (even raising) never stops the sweep.
        """
        results: list[ProviderStatus] = []

        for provider_type, info in self._registry.info_mapping().items():
            try:
                provider = self.create_configured_provider(provider_type)
                validation = provider.validate_config()
                if not validation.valid:
                    results.append(
                        ProviderStatus(
                            type=provider_type,
                            name=info.display_name,
                            status='unconfigured',
                            message=', '.join(validation.errors),
                        ),
                    )
                    continue

                outcome = await provider.test_connection()
                results.append(
                    ProviderStatus(
                        type=provider_type,
                        name=info.display_name,
                        status='ok' if outcome.success else 'error',
                        message=outcome.message,
                        latency_ms=outcome.latency_ms,
                    ),
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception('Provider sweep failed for %s', provider_type)
                results.append(
                    ProviderStatus(type=provider_type, name=info.display_name, status='error', message=str(exc)),
                )

        return results
