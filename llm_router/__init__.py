"""
LLM Router - Conversation Routing Engine
========================================

Decides which backend model answers a conversation turn, shapes the
conversation history for that backend, and isolates provider failures from
the rest of the request. Also offers an advisory intent classifier that
suggests a model for a draft message before it is sent.

Security Features:
- No API keys stored in code
- Secure credential storage (keyring/encrypted file)
- Secrets redacted from log output

Example Usage:
    >>> from llm_router import RoutingEngine, SQLiteConversationStore, load_config
    >>> import asyncio
    >>>
    >>> async def main():
    ...     store = SQLiteConversationStore()
    ...     engine = RoutingEngine.from_config(load_config(), store)
    ...     conversation = await store.create_conversation(model_profile="claude-3-5-sonnet")
    ...     await store.add_message(conversation.id, "USER", "Hello!")
    ...     outcome = await engine.generate_reply(conversation.id)
    ...     print(outcome.unwrap().content)
    >>>
    >>> asyncio.run(main())
"""

__version__ = "0.1.0"

from .classifier import IntentClassifier
from .config import RouterConfig, load_config, setup_logging
from .context import build_context
from .conversations import ConversationService, TurnResult
from .credentials import (
    CredentialManager,
    configure_credentials_interactive,
    get_api_key,
    get_credential_manager,
    set_api_key,
)
from .engine import RoutingEngine
from .errors import (
    ConfigurationError,
    ConversationNotFound,
    GenerationFailed,
    ProviderUnavailable,
    RouterError,
)
from .models import (
    ClassificationResult,
    Conversation,
    Intent,
    LlmMessage,
    LlmResponse,
    Message,
    ProviderId,
    ResolvedRoute,
    Role,
)
from .orchestrator import ReplyOrchestrator, ReplyOutcome, ReplyState
from .profiles import ModelProfileResolver, ProfileTable
from .registry import ProviderRegistry
from .storage import ConversationStore, SQLiteConversationStore

__all__ = [
    # Version
    "__version__",

    # Credential management
    "get_api_key",
    "set_api_key",
    "get_credential_manager",
    "CredentialManager",
    "configure_credentials_interactive",

    # Configuration
    "RouterConfig",
    "load_config",
    "setup_logging",

    # Routing
    "RoutingEngine",
    "ReplyOrchestrator",
    "ReplyOutcome",
    "ReplyState",
    "IntentClassifier",
    "ModelProfileResolver",
    "ProfileTable",
    "ProviderRegistry",
    "build_context",

    # Storage and callers
    "ConversationStore",
    "SQLiteConversationStore",
    "ConversationService",
    "TurnResult",

    # Data model
    "ClassificationResult",
    "Conversation",
    "Intent",
    "LlmMessage",
    "LlmResponse",
    "Message",
    "ProviderId",
    "ResolvedRoute",
    "Role",

    # Errors
    "RouterError",
    "ConfigurationError",
    "ConversationNotFound",
    "GenerationFailed",
    "ProviderUnavailable",
]
