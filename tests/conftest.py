"""
Shared fixtures for the router tests.

These tests never touch the network: provider SDK handles are replaced with
stubs or the providers are fakes built on ``BaseProvider``. Never commit real
API keys to tests.
"""

import asyncio

import pytest

from llm_router.models import LlmResponse, ProviderId
from llm_router.providers import BaseProvider
from llm_router.registry import ProviderRegistry
from llm_router.storage import SQLiteConversationStore


class FakeProvider(BaseProvider):
    """Provider whose backend call is scripted by the test"""

    credential_env_var = "FAKE_API_KEY"

    def __init__(
        self,
        provider_id,
        api_key="test-key",
        *,
        reply="fake reply",
        reported_model=None,
        error=None,
        delay=0.0,
        timeout=5.0,
    ):
        self.provider_id = provider_id
        self.reply = reply
        self.reported_model = reported_model
        self.error = error
        self.delay = delay
        self.calls = []
        super().__init__(api_key, timeout=timeout)

    def _create_client(self, api_key):
        return object()

    def format_messages(self, messages):
        return list(messages)

    async def _complete(self, backend_model_id, messages):
        self.calls.append((backend_model_id, list(messages)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LlmResponse(
            content=self.reply,
            backend_model_id=self.reported_model or backend_model_id,
        )


@pytest.fixture
def fake_providers():
    return {provider_id: FakeProvider(provider_id) for provider_id in ProviderId}


@pytest.fixture
def registry(fake_providers):
    return ProviderRegistry(fake_providers)


@pytest.fixture
def store(tmp_path):
    return SQLiteConversationStore(tmp_path / "conversations.db")
