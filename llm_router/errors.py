"""
Error taxonomy for the routing engine
=====================================

Every failure the core reports is one of these types. Provider clients
translate whatever their SDK raises into ``ProviderUnavailable`` or
``GenerationFailed`` so callers never have to know vendor exception classes.

Classification parse failures are deliberately absent: the classifier absorbs
them into a default result.
"""

from __future__ import annotations

import re


class RouterError(Exception):
    """Base class for all routing engine errors"""

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(RouterError):
    """Missing or invalid startup configuration. Logged, never fatal."""


class ConversationNotFound(RouterError):
    """The requested conversation does not exist. Caller error, not retried."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class ProviderUnavailable(RouterError):
    """Credential missing or provider transport unreachable"""

    def __init__(
        self,
        provider: str,
        reason: str,
        *,
        cause: BaseException | None = None,
    ):
        super().__init__(f"Provider '{provider}' unavailable: {reason}", cause=cause)
        self.provider = provider
        self.reason = reason


class GenerationFailed(RouterError):
    """The provider call executed but errored, timed out or returned garbage"""

    def __init__(
        self,
        provider: str,
        model: str,
        reason: str,
        *,
        cause: BaseException | None = None,
    ):
        super().__init__(
            f"Generation failed on {provider}/{model}: {reason}", cause=cause
        )
        self.provider = provider
        self.model = model
        self.reason = reason


_SECRET_PATTERN = re.compile(
    r"(sk-|sk-ant-|AIza|api[_-]?key\s*[=:]?\s*|bearer\s+)[a-zA-Z0-9\-_]{16,}",
    flags=re.IGNORECASE,
)


def sanitize_for_logging(text: str, max_len: int = 200) -> str:
    """Truncate text and redact anything that looks like an API key"""
    if not text:
        return ""
    sanitized = _SECRET_PATTERN.sub("[REDACTED]", text[:max_len])
    return sanitized + ("..." if len(text) > max_len else "")
