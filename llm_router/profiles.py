"""
Model Profile Resolver
======================

Maps the user-facing model profile (the string stored on a conversation or
picked in the UI) to a concrete provider and backend model identifier.

The lookup is a case-sensitive exact match against an immutable table.
Unknown profiles fall back to the default route instead of failing, so
routing always produces *some* route.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .errors import ConfigurationError
from .models import ProviderId, ResolvedRoute

logger = logging.getLogger(__name__)

SYSTEM_DEFAULT_PROFILE = "gpt-4o"

DEFAULT_ROUTE = ResolvedRoute(ProviderId.OPENAI, "gpt-4o")

BUILTIN_PROFILES: Mapping[str, ResolvedRoute] = MappingProxyType(
    {
        "gpt-4o": ResolvedRoute(ProviderId.OPENAI, "gpt-4o"),
        "gpt-4o-mini": ResolvedRoute(ProviderId.OPENAI, "gpt-4o-mini"),
        "gpt-4.1-mini": ResolvedRoute(ProviderId.OPENAI, "gpt-4.1-mini"),
        "claude-3-5-sonnet": ResolvedRoute(
            ProviderId.ANTHROPIC, "claude-3-5-sonnet-20241022"
        ),
        # Spelling used by the web client's model picker
        "claude-3.5-sonnet": ResolvedRoute(
            ProviderId.ANTHROPIC, "claude-3-5-sonnet-20241022"
        ),
        "gemini-1.5-pro": ResolvedRoute(ProviderId.GEMINI, "gemini-1.5-pro"),
    }
)


def parse_profile_entry(name: Any, raw: Any) -> ResolvedRoute:
    """Validate one ``{"provider": ..., "model": ...}`` config entry"""
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"Profile name must be a non-empty string: {name!r}")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Profile '{name}' must be an object")

    provider = raw.get("provider")
    model = raw.get("model")
    try:
        provider_id = ProviderId(provider)
    except ValueError:
        raise ConfigurationError(
            f"Profile '{name}' names unknown provider {provider!r}"
        ) from None
    if not isinstance(model, str) or not model.strip():
        raise ConfigurationError(f"Profile '{name}' has no backend model")

    return ResolvedRoute(provider_id, model.strip())


@dataclass(frozen=True)
class ProfileTable:
    """Immutable profile -> route table, built once at startup"""

    routes: Mapping[str, ResolvedRoute] = field(default_factory=lambda: BUILTIN_PROFILES)
    default_route: ResolvedRoute = DEFAULT_ROUTE

    def __post_init__(self) -> None:
        # Freeze whatever mapping we were handed
        object.__setattr__(self, "routes", MappingProxyType(dict(self.routes)))

    def with_overrides(
        self, raw: Mapping[str, Any]
    ) -> tuple[ProfileTable, list[ConfigurationError]]:
        """Return a new table with user-configured entries layered on top.

        Malformed entries are skipped; their errors are returned so the caller
        can log them.
        """
        routes = dict(self.routes)
        errors: list[ConfigurationError] = []
        for name, entry in raw.items():
            try:
                routes[name] = parse_profile_entry(name, entry)
            except ConfigurationError as e:
                errors.append(e)
        return ProfileTable(routes=routes, default_route=self.default_route), errors

    def __contains__(self, profile: object) -> bool:
        return profile in self.routes

    def __len__(self) -> int:
        return len(self.routes)


class ModelProfileResolver:
    """Deterministic profile lookup. Never raises."""

    def __init__(self, table: ProfileTable | None = None):
        self.table = table or ProfileTable()

    def resolve(self, profile: str | None, system_default: str) -> ResolvedRoute:
        effective = profile or system_default
        route = self.table.routes.get(effective)
        if route is None:
            logger.info(
                f"Unknown model profile '{effective}', using default route "
                f"{self.table.default_route.provider_id.value}/"
                f"{self.table.default_route.backend_model_id}"
            )
            return self.table.default_route
        return route
