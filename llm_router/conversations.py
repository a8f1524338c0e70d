"""
Conversation Service
====================

The calling layer around the routing engine: persists the user's turn, asks
for a reply and persists it when one was produced. A failed generation never
fails the turn; the user's message is already stored and is returned either
way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .classifier import MAX_PREVIEW_CHARS
from .engine import RoutingEngine
from .errors import ConversationNotFound
from .models import ClassificationResult, Conversation, Message, Role
from .profiles import SYSTEM_DEFAULT_PROFILE
from .storage import SQLiteConversationStore

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 8000
DEFAULT_TITLE = "New conversation"


@dataclass(frozen=True)
class TurnResult:
    user_message: Message
    assistant_message: Message | None = None
    error: Exception | None = None

    def to_dict(self) -> dict:
        return {
            "userMessage": self.user_message.to_dict(),
            "assistantMessage": (
                self.assistant_message.to_dict() if self.assistant_message else None
            ),
        }


def validate_content(content: str, max_chars: int) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Message content must not be empty")
    if len(content) > max_chars:
        raise ValueError(f"Message content exceeds {max_chars} characters")
    return content


class ConversationService:
    def __init__(
        self,
        store: SQLiteConversationStore,
        engine: RoutingEngine,
        default_profile: str = SYSTEM_DEFAULT_PROFILE,
    ):
        self.store = store
        self.engine = engine
        self.default_profile = default_profile

    async def create_conversation(
        self, title: str | None = None, model_profile: str | None = None
    ) -> Conversation:
        title = (title or "").strip() or DEFAULT_TITLE
        model_profile = (model_profile or "").strip() or self.default_profile
        conversation = await self.store.create_conversation(title, model_profile)
        logger.info(f"Created conversation {conversation.id} ({model_profile})")
        return conversation

    async def get_conversation_or_raise(self, conversation_id: str) -> Conversation:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        return conversation

    async def add_message(
        self,
        conversation_id: str,
        content: str,
        model_profile: str | None = None,
    ) -> TurnResult:
        """Store a user turn and, best-effort, the assistant's reply"""
        await self.get_conversation_or_raise(conversation_id)
        validate_content(content, MAX_MESSAGE_CHARS)

        user_message = await self.store.add_message(conversation_id, Role.USER, content)
        assistant_message, error = await self._reply(conversation_id, model_profile)
        return TurnResult(
            user_message=user_message, assistant_message=assistant_message, error=error
        )

    async def _reply(
        self, conversation_id: str, model_profile: str | None
    ) -> tuple[Message | None, Exception | None]:
        # The user turn is already stored; nothing past this point fails the call
        try:
            outcome = await self.engine.generate_reply(conversation_id, model_profile)
            if not outcome.success:
                logger.error(
                    f"generate_reply failed for conversation {conversation_id}: "
                    f"{outcome.error.message if outcome.error else outcome.state.name}"
                )
                return None, outcome.error

            response = outcome.unwrap()
            assistant_message = await self.store.add_message(
                conversation_id,
                Role.ASSISTANT,
                response.content,
                model_used=response.backend_model_id,
            )
        except Exception as e:
            logger.exception(f"Assistant reply failed for conversation {conversation_id}")
            return None, e
        return assistant_message, None

    async def regenerate_reply(
        self, conversation_id: str, model_profile: str | None = None
    ) -> Message | None:
        """Ask for a reply to the existing history without adding a user turn"""
        await self.get_conversation_or_raise(conversation_id)
        assistant_message, _ = await self._reply(conversation_id, model_profile)
        return assistant_message

    async def preview(
        self, content: str, last_model: str | None = None
    ) -> ClassificationResult:
        return await self.engine.preview_routing(content[:MAX_PREVIEW_CHARS], last_model)

    async def list_messages(self, conversation_id: str) -> list[Message]:
        await self.get_conversation_or_raise(conversation_id)
        return await self.store.list_messages(conversation_id)
