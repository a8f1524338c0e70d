"""
Routing Engine Data Model
=========================

Stored entities (``Conversation``, ``Message``) are read from the external
conversation store; everything else is an ephemeral value built per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

LlmRole = Literal["system", "user", "assistant"]


class Role(str, Enum):
    """Role values as persisted by the conversation store"""

    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"


class ProviderId(str, Enum):
    """The fixed set of text-generation backends known at startup"""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class Intent(str, Enum):
    """Intent categories the classifier may predict"""

    CHAT = "chat"
    CODE = "code"
    ANALYSIS = "analysis"
    REWRITE = "rewrite"


@dataclass(frozen=True)
class Conversation:
    """A conversation as seen by the core (messages are loaded separately)"""

    id: str
    title: str
    model_profile: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Message:
    """A persisted message. Never mutated after creation."""

    id: str
    conversation_id: str
    role: Role | str
    content: str
    created_at: datetime
    model_used: str | None = None

    def to_dict(self) -> dict[str, Any]:
        role = self.role.value if isinstance(self.role, Role) else self.role
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "role": role,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "modelUsed": self.model_used,
        }


@dataclass(frozen=True)
class RoutingRequest:
    conversation_id: str
    override_model_profile: str | None = None


@dataclass(frozen=True)
class ResolvedRoute:
    provider_id: ProviderId
    backend_model_id: str


@dataclass(frozen=True)
class LlmMessage:
    """Normalized unit submitted to a provider client"""

    role: LlmRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class LlmResponse:
    """Normalized result of a generation call.

    ``backend_model_id`` is the identifier the backend reported, which may
    differ from the one requested when the vendor aliases versions.
    """

    content: str
    backend_model_id: str
    provider_id: ProviderId | None = None
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0


@dataclass(frozen=True)
class ClassificationResult:
    intent: Intent
    suggested_model: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {
            "intent": self.intent.value,
            "suggestedModel": self.suggested_model,
            "reason": self.reason,
        }
