"""Routing engine facade: the two operations exposed to callers."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .classifier import IntentClassifier
from .config import RouterConfig
from .models import ClassificationResult, ProviderId
from .orchestrator import ReplyOrchestrator, ReplyOutcome
from .profiles import ModelProfileResolver
from .registry import ProviderRegistry
from .storage import ConversationStore

logger = logging.getLogger(__name__)


class RoutingEngine:
    def __init__(
        self,
        orchestrator: ReplyOrchestrator,
        classifier: IntentClassifier,
        registry: ProviderRegistry,
    ):
        self.orchestrator = orchestrator
        self.classifier = classifier
        self.registry = registry

    @classmethod
    def from_config(
        cls,
        config: RouterConfig,
        store: ConversationStore,
        api_key_lookup: Callable[[str], str | None] | None = None,
    ) -> RoutingEngine:
        """Wire registry, resolver, orchestrator and classifier"""
        if api_key_lookup is None:
            from .credentials import get_api_key

            api_key_lookup = get_api_key

        registry = ProviderRegistry.from_config(config, api_key_lookup)
        orchestrator = ReplyOrchestrator(
            store=store,
            registry=registry,
            resolver=ModelProfileResolver(config.profiles),
            system_default=config.default_profile,
            max_turns=config.context_window,
        )
        classifier = IntentClassifier(
            registry.get(ProviderId.OPENAI),
            router_model=config.router_model,
            default_model=config.default_profile,
        )

        unavailable = [p.value for p in registry.unavailable()]
        logger.info(
            f"Routing engine ready: default profile '{config.default_profile}', "
            f"{len(config.profiles)} profiles, unavailable providers: {unavailable or 'none'}"
        )
        return cls(orchestrator, classifier, registry)

    async def generate_reply(
        self, conversation_id: str, override_model_profile: str | None = None
    ) -> ReplyOutcome:
        return await self.orchestrator.generate_reply(
            conversation_id, override_model_profile
        )

    async def preview_routing(
        self, content: str, last_model_hint: str | None = None
    ) -> ClassificationResult:
        return await self.classifier.classify(content, last_model_hint)
