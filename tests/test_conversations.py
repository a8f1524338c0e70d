"""Tests for the conversation service (best-effort reply contract)"""

import sqlite3

import pytest

from llm_router.classifier import IntentClassifier
from llm_router.conversations import MAX_MESSAGE_CHARS, ConversationService
from llm_router.engine import RoutingEngine
from llm_router.errors import ConversationNotFound, GenerationFailed
from llm_router.models import Intent, ProviderId, Role
from llm_router.orchestrator import ReplyOrchestrator
from llm_router.registry import ProviderRegistry
from llm_router.storage import SQLiteConversationStore

from .conftest import FakeProvider


def make_service(store, providers):
    registry = ProviderRegistry(providers)
    engine = RoutingEngine(
        ReplyOrchestrator(store, registry),
        IntentClassifier(registry.get(ProviderId.OPENAI)),
        registry,
    )
    return ConversationService(store, engine, default_profile="gpt-4o")


@pytest.fixture
def service(store, fake_providers):
    return make_service(store, fake_providers)


class TestCreateConversation:
    @pytest.mark.asyncio
    async def test_defaults(self, service):
        conversation = await service.create_conversation()
        assert conversation.title == "New conversation"
        assert conversation.model_profile == "gpt-4o"

    @pytest.mark.asyncio
    async def test_blank_values_use_defaults(self, service):
        conversation = await service.create_conversation("  ", " ")
        assert conversation.title == "New conversation"
        assert conversation.model_profile == "gpt-4o"

    @pytest.mark.asyncio
    async def test_explicit_values(self, service):
        conversation = await service.create_conversation(" Recipes ", "claude-3-5-sonnet")
        assert conversation.title == "Recipes"
        assert conversation.model_profile == "claude-3-5-sonnet"


class TestAddMessage:
    @pytest.mark.asyncio
    async def test_user_and_assistant_messages_are_stored(self, service, store):
        conversation = await service.create_conversation(model_profile="claude-3-5-sonnet")

        turn = await service.add_message(conversation.id, "Hello")

        assert turn.user_message.role is Role.USER
        assert turn.assistant_message.content == "fake reply"
        assert turn.assistant_message.model_used == "claude-3-5-sonnet-20241022"
        assert turn.error is None
        messages = await store.list_messages(conversation.id)
        assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT]

    @pytest.mark.asyncio
    async def test_provider_sees_new_user_message(self, service, fake_providers):
        conversation = await service.create_conversation()

        await service.add_message(conversation.id, "What's new?")

        _, messages = fake_providers[ProviderId.OPENAI].calls[0]
        assert messages[-1].content == "What's new?"

    @pytest.mark.asyncio
    async def test_per_message_override(self, service, fake_providers):
        conversation = await service.create_conversation(model_profile="gpt-4o")

        turn = await service.add_message(conversation.id, "Hi", model_profile="gemini-1.5-pro")

        assert turn.assistant_message.model_used == "gemini-1.5-pro"
        assert not fake_providers[ProviderId.OPENAI].calls

    @pytest.mark.asyncio
    async def test_failed_generation_keeps_user_message(self, store):
        providers = {p: FakeProvider(p) for p in ProviderId}
        providers[ProviderId.OPENAI] = FakeProvider(
            ProviderId.OPENAI, error=RuntimeError("HTTP 500")
        )
        service = make_service(store, providers)
        conversation = await service.create_conversation()

        turn = await service.add_message(conversation.id, "Hello")

        assert turn.assistant_message is None
        assert isinstance(turn.error, GenerationFailed)
        assert turn.to_dict()["assistantMessage"] is None
        messages = await store.list_messages(conversation.id)
        assert [m.content for m in messages] == ["Hello"]

    @pytest.mark.asyncio
    async def test_unknown_conversation_writes_nothing(self, service, fake_providers):
        with pytest.raises(ConversationNotFound):
            await service.add_message("missing", "Hello")
        assert not fake_providers[ProviderId.OPENAI].calls

    @pytest.mark.asyncio
    async def test_content_validation(self, service, store):
        conversation = await service.create_conversation()

        with pytest.raises(ValueError):
            await service.add_message(conversation.id, "   ")
        with pytest.raises(ValueError):
            await service.add_message(conversation.id, "x" * (MAX_MESSAGE_CHARS + 1))

        assert await store.list_messages(conversation.id) == []


class AssistantWriteFailsStore(SQLiteConversationStore):
    def _insert_message(self, conversation_id, role, content, model_used):
        if role is Role.ASSISTANT:
            raise sqlite3.OperationalError("database is locked")
        return super()._insert_message(conversation_id, role, content, model_used)


class HistoryReadFailsStore(SQLiteConversationStore):
    def _fetch_recent(self, conversation_id, limit):
        raise sqlite3.OperationalError("disk I/O error")


class TestStorageFailuresDuringReply:
    """Once the user turn is stored, reply-side failures never fail the turn"""

    @pytest.mark.asyncio
    async def test_assistant_write_failure_keeps_user_message(self, tmp_path, fake_providers):
        store = AssistantWriteFailsStore(tmp_path / "conversations.db")
        service = make_service(store, fake_providers)
        conversation = await service.create_conversation()

        turn = await service.add_message(conversation.id, "Hello")

        assert turn.assistant_message is None
        assert isinstance(turn.error, sqlite3.OperationalError)
        messages = await store.list_messages(conversation.id)
        assert [m.content for m in messages] == ["Hello"]

    @pytest.mark.asyncio
    async def test_history_read_failure_keeps_user_message(self, tmp_path, fake_providers):
        store = HistoryReadFailsStore(tmp_path / "conversations.db")
        service = make_service(store, fake_providers)
        conversation = await service.create_conversation()

        turn = await service.add_message(conversation.id, "Hello")

        assert turn.assistant_message is None
        assert isinstance(turn.error, sqlite3.OperationalError)
        assert turn.user_message.content == "Hello"
        assert not fake_providers[ProviderId.OPENAI].calls

    @pytest.mark.asyncio
    async def test_regenerate_reply_returns_none_on_store_failure(
        self, tmp_path, fake_providers
    ):
        store = AssistantWriteFailsStore(tmp_path / "conversations.db")
        service = make_service(store, fake_providers)
        conversation = await service.create_conversation()
        await store.add_message(conversation.id, Role.USER, "Hello")

        assert await service.regenerate_reply(conversation.id) is None

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, tmp_path, fake_providers, caplog):
        store = AssistantWriteFailsStore(tmp_path / "conversations.db")
        service = make_service(store, fake_providers)
        conversation = await service.create_conversation()

        await service.add_message(conversation.id, "Hello")

        assert "Assistant reply failed" in caplog.text


class TestOtherOperations:
    @pytest.mark.asyncio
    async def test_regenerate_reply(self, service, store):
        conversation = await service.create_conversation()
        await store.add_message(conversation.id, Role.USER, "Hello")

        message = await service.regenerate_reply(conversation.id, "claude-3-5-sonnet")

        assert message.role is Role.ASSISTANT
        assert message.model_used == "claude-3-5-sonnet-20241022"

    @pytest.mark.asyncio
    async def test_preview_degrades_to_default(self, service):
        result = await service.preview("fix my code")
        assert result.intent is Intent.CHAT
        assert result.suggested_model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_list_messages_unknown_conversation(self, service):
        with pytest.raises(ConversationNotFound):
            await service.list_messages("missing")
