"""Context window construction: stored history -> provider message list."""

from __future__ import annotations

from collections.abc import Sequence

from .models import LlmMessage, LlmRole, Message, Role

DEFAULT_MAX_TURNS = 30

_ROLE_MAP: dict[str, LlmRole] = {
    Role.USER.value: "user",
    Role.ASSISTANT.value: "assistant",
    Role.SYSTEM.value: "system",
}


def map_role(role: Role | str) -> LlmRole:
    """Map a stored role onto the canonical three roles.

    Unrecognized roles become ``system`` so their content is not lost.
    """
    key = role.value if isinstance(role, Role) else role
    return _ROLE_MAP.get(key, "system")


def build_context(
    history: Sequence[Message],
    max_turns: int = DEFAULT_MAX_TURNS,
) -> list[LlmMessage]:
    """Return the most recent ``max_turns`` messages, oldest first.

    ``history`` must already be in ascending creation order.
    """
    if max_turns < 1:
        raise ValueError(f"max_turns must be positive, got {max_turns}")

    window = history[-max_turns:]
    return [LlmMessage(role=map_role(m.role), content=m.content) for m in window]
