"""registry.provider_registry

Global registry that maps provider slugs (e.g. "claude") to their concrete
adapter classes (subclasses of BaseProvider) and the static metadata shown to
users (display name, local/cloud flag, key requirement, default base URL).

The registry imports nothing HTTP-related and resolves ``BaseProvider``
lazily, so adapter modules can import it at load time and register
themselves at the bottom of the module.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Generic, TypeVar

from llm_relay.core.exceptions import ProviderNotFoundError
from llm_relay.core.types import ProviderInfo

if TYPE_CHECKING:
    from collections.abc import Mapping, MutableMapping

    from llm_relay.core.abc import BaseProvider

# Type variable for better type annotations
ProviderT = TypeVar('ProviderT', bound='BaseProvider')


class _ThreadSafeSingleton(type):
    """Metaclass ensuring a single registry instance across threads."""

    _instance: ProviderRegistry | None = None
    _lock = threading.Lock()

    def __call__(cls, *args: object, **kwargs: object) -> ProviderRegistry:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__call__(*args, **kwargs)
        return cls._instance


class ProviderRegistry(Generic[ProviderT], metaclass=_ThreadSafeSingleton):
    """Centralised look-up and registration for provider → adapter mappings.

    Usage (typically at the bottom of adapter modules):

    ```python
    from llm_relay.registry.provider_registry import provider_registry

    class ClaudeProvider(BaseProvider):
        ...

    provider_registry.register("claude", ClaudeProvider, ProviderInfo(display_name="Anthropic Claude"))
    ```
    """

    _registry: MutableMapping[str, type[ProviderT]]
    _info: MutableMapping[str, ProviderInfo]

    def __init__(self) -> None:  # pragma: no cover - called once via singleton
        self._registry = {}
        self._info = {}

    def register(self, provider_key: str, adapter_cls: type[ProviderT], info: ProviderInfo | None = None) -> None:
        """Register adapter_cls under provider_key.

        Parameters
        ----------
        provider_key
            Slug such as "openai" or "claude". Normalised to lower-case.
        adapter_cls
            Concrete subclass implementing BaseProvider.
        info
            UI metadata. Defaults to a cloud, key-requiring entry named after
            the slug.

        """
        key = provider_key.lower()
        from llm_relay.core.abc import BaseProvider  # local import avoids cycles

        if not isinstance(adapter_cls, type) or not issubclass(adapter_cls, BaseProvider):
            raise TypeError('adapter_cls must subclass BaseProvider')
        self._registry[key] = adapter_cls
        self._info[key] = info or ProviderInfo(display_name=provider_key)

    def get_adapter_cls(self, provider_key: str) -> type[ProviderT]:
        """Return the adapter class registered for provider_key.

        Raises
        ------
        ProviderNotFoundError
            If provider_key hasn't been registered. The message lists the
            valid identifiers.

        """
        key = provider_key.lower()
        try:
            return self._registry[key]
        except KeyError as exc:
            available = ', '.join(self._registry)
            raise ProviderNotFoundError(
                f'Unknown provider type: "{provider_key}". Available providers: {available}',
            ) from exc

    def get_info(self, provider_key: str) -> ProviderInfo | None:
        return self._info.get(provider_key.lower())

    def has_provider(self, provider_key: str) -> bool:
        return provider_key.lower() in self._registry

    def available_providers(self) -> list[str]:
        """Return a sorted list of registered providers (for introspection)."""
        return sorted(self._registry)

    # Copies; callers cannot mutate the registry through them
    def mapping(self) -> Mapping[str, type[ProviderT]]:
        """Return a read-only copy of the provider registry mapping (registration order)."""
        return dict(self._registry)

    def info_mapping(self) -> Mapping[str, ProviderInfo]:
        return dict(self._info)

    def unregister(self, provider_key: str) -> None:
        """Drop provider_key if present (used by tests and plugin reloads)."""
        key = provider_key.lower()
        self._registry.pop(key, None)
        self._info.pop(key, None)


# Re-export a module-level instance for ergonomic usage
provider_registry: ProviderRegistry = ProviderRegistry()
