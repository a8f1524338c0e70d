"""
Reply Orchestrator
==================

Coordinates one assistant reply for one conversation turn:

    LOADING_CONVERSATION -> RESOLVING_ROUTE -> BUILDING_CONTEXT
        -> CALLING_PROVIDER -> SUCCEEDED | PROVIDER_FAILED

A missing conversation ends in NOT_FOUND. Every outcome is returned as a
``ReplyOutcome`` rather than raised.

Nothing here is retried and nothing is persisted; the orchestrator holds no
mutable state and is safe to call concurrently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto

from .context import DEFAULT_MAX_TURNS, build_context
from .errors import (
    ConversationNotFound,
    GenerationFailed,
    ProviderUnavailable,
    RouterError,
    sanitize_for_logging,
)
from .models import LlmResponse, ResolvedRoute, RoutingRequest
from .profiles import SYSTEM_DEFAULT_PROFILE, ModelProfileResolver
from .registry import ProviderRegistry
from .storage import ConversationStore

logger = logging.getLogger(__name__)


class ReplyState(Enum):
    LOADING_CONVERSATION = auto()
    RESOLVING_ROUTE = auto()
    BUILDING_CONTEXT = auto()
    CALLING_PROVIDER = auto()
    SUCCEEDED = auto()
    PROVIDER_FAILED = auto()
    NOT_FOUND = auto()


@dataclass(frozen=True)
class ReplyOutcome:
    """Result/error union returned by ``generate_reply``"""

    state: ReplyState
    response: LlmResponse | None = None
    error: ConversationNotFound | ProviderUnavailable | GenerationFailed | None = None
    route: ResolvedRoute | None = None

    @property
    def success(self) -> bool:
        return self.state is ReplyState.SUCCEEDED

    def unwrap(self) -> LlmResponse:
        """Return the response or raise the typed error"""
        if self.response is not None:
            return self.response
        assert self.error is not None
        raise self.error


class ReplyOrchestrator:
    def __init__(
        self,
        store: ConversationStore,
        registry: ProviderRegistry,
        resolver: ModelProfileResolver | None = None,
        system_default: str = SYSTEM_DEFAULT_PROFILE,
        max_turns: int = DEFAULT_MAX_TURNS,
    ) -> None:
        self.store = store
        self.registry = registry
        self.resolver = resolver or ModelProfileResolver()
        self.system_default = system_default
        self.max_turns = max_turns

    def effective_profile(
        self, override: str | None, conversation_profile: str | None
    ) -> str:
        """Per-call override > conversation default > system default"""
        return override or conversation_profile or self.system_default

    def _enter(self, conversation_id: str, state: ReplyState) -> None:
        logger.debug(f"Conversation {conversation_id}: {state.name}")

    async def handle(self, request: RoutingRequest) -> ReplyOutcome:
        return await self.generate_reply(
            request.conversation_id, request.override_model_profile
        )

    async def generate_reply(
        self,
        conversation_id: str,
        override_profile: str | None = None,
    ) -> ReplyOutcome:
        self._enter(conversation_id, ReplyState.LOADING_CONVERSATION)
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            logger.info(f"generate_reply: conversation {conversation_id} not found")
            return ReplyOutcome(
                state=ReplyState.NOT_FOUND,
                error=ConversationNotFound(conversation_id),
            )

        self._enter(conversation_id, ReplyState.RESOLVING_ROUTE)
        profile = self.effective_profile(override_profile, conversation.model_profile)
        route = self.resolver.resolve(profile, self.system_default)
        provider = self.registry.get(route.provider_id)

        self._enter(conversation_id, ReplyState.BUILDING_CONTEXT)
        history = await self.store.get_recent_messages(conversation_id, self.max_turns)
        messages = build_context(history, self.max_turns)

        self._enter(conversation_id, ReplyState.CALLING_PROVIDER)
        logger.info(
            f"Conversation {conversation_id}: profile '{profile}' -> "
            f"{route.provider_id.value}/{route.backend_model_id} "
            f"({len(messages)} messages)"
        )
        try:
            response = await provider.generate(route.backend_model_id, messages)
        except (ProviderUnavailable, GenerationFailed) as e:
            logger.warning(
                f"Reply generation failed for conversation {conversation_id}: "
                f"{sanitize_for_logging(e.message)}"
            )
            return ReplyOutcome(state=ReplyState.PROVIDER_FAILED, error=e, route=route)
        except RouterError as e:
            # A provider should only raise the two types above
            wrapped = GenerationFailed(
                route.provider_id.value, route.backend_model_id, e.message, cause=e
            )
            return ReplyOutcome(
                state=ReplyState.PROVIDER_FAILED, error=wrapped, route=route
            )

        logger.info(
            f"Conversation {conversation_id}: reply from {response.backend_model_id} "
            f"in {response.latency_ms:.0f}ms"
        )
        return ReplyOutcome(state=ReplyState.SUCCEEDED, response=response, route=route)
