"""Provider registry: the read-only set of provider clients, keyed by ProviderId."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import ConfigurationError
from .models import ProviderId
from .providers import PROVIDER_CLASSES, BaseProvider

if TYPE_CHECKING:
    from .config import RouterConfig


class ProviderRegistry:
    """Holds exactly one client per ``ProviderId``. Immutable after init."""

    def __init__(self, providers: Mapping[ProviderId, BaseProvider]):
        missing = [p.value for p in ProviderId if p not in providers]
        if missing:
            raise ConfigurationError(f"No client registered for providers: {missing}")
        self._providers: Mapping[ProviderId, BaseProvider] = MappingProxyType(
            dict(providers)
        )

    @classmethod
    def from_config(
        cls,
        config: RouterConfig,
        api_key_lookup: Callable[[str], str | None],
    ) -> ProviderRegistry:
        """Build every provider client from configuration and credentials.

        A provider without a credential is still registered; calls to it fail
        with ProviderUnavailable at request time.
        """
        providers: dict[ProviderId, BaseProvider] = {}
        for provider_id, provider_cls in PROVIDER_CLASSES.items():
            providers[provider_id] = provider_cls(
                api_key_lookup(provider_id.value),
                timeout=config.request_timeout,
                max_output_tokens=config.max_output_tokens,
            )
        return cls(providers)

    def get(self, provider_id: ProviderId) -> BaseProvider:
        return self._providers[provider_id]

    def is_available(self, provider_id: ProviderId) -> bool:
        return self._providers[provider_id].has_credential

    def unavailable(self) -> list[ProviderId]:
        return [p for p, client in self._providers.items() if not client.has_credential]
