"""Tests for the intent/model classifier"""

import json

import pytest

from llm_router.classifier import (
    MAX_PREVIEW_CHARS,
    SUGGESTABLE_MODELS,
    IntentClassifier,
    parse_classification,
    strip_code_fences,
)
from llm_router.models import Intent, ProviderId

from .conftest import FakeProvider


def router_reply(intent="code", model="claude-3-5-sonnet", reason="Debugging Python code"):
    return json.dumps({"intent": intent, "suggestedModel": model, "reason": reason})


def make_classifier(**provider_kwargs):
    provider = FakeProvider(ProviderId.OPENAI, **provider_kwargs)
    return IntentClassifier(provider, default_model="gpt-4o"), provider


class TestClassify:
    @pytest.mark.asyncio
    async def test_code_request(self):
        classifier, provider = make_classifier(reply=router_reply())

        result = await classifier.classify("fix this bug in my python function")

        assert result.intent is Intent.CODE
        assert result.suggested_model in SUGGESTABLE_MODELS
        assert result.reason == "Debugging Python code"
        model, messages = provider.calls[0]
        assert model == "gpt-4o-mini"
        assert messages[0].role == "system"
        assert "fix this bug in my python function" in messages[1].content

    @pytest.mark.asyncio
    async def test_fenced_json_is_accepted(self):
        fenced = f"```json\n{router_reply(intent='rewrite', model='gpt-4.1-mini')}\n```"
        classifier, _ = make_classifier(reply=fenced)

        result = await classifier.classify("make this paragraph shorter")

        assert result.intent is Intent.REWRITE
        assert result.suggested_model == "gpt-4.1-mini"

    @pytest.mark.asyncio
    async def test_malformed_output_returns_default(self):
        classifier, _ = make_classifier(reply="I think this is about code!")

        result = await classifier.classify("fix this bug")

        assert result.to_dict() == {"intent": "chat", "suggestedModel": "gpt-4o", "reason": ""}

    @pytest.mark.asyncio
    async def test_out_of_range_fields_return_default(self):
        for reply in (
            router_reply(intent="poetry"),
            router_reply(model="gpt-5-ultra"),
            json.dumps({"intent": "code"}),
            json.dumps(["code", "gpt-4o"]),
        ):
            classifier, _ = make_classifier(reply=reply)
            result = await classifier.classify("anything")
            assert result.intent is Intent.CHAT
            assert result.suggested_model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_provider_failure_returns_default(self):
        classifier, _ = make_classifier(error=RuntimeError("HTTP 500"))
        result = await classifier.classify("analyze this spreadsheet")
        assert result.intent is Intent.CHAT
        assert result.reason == ""

    @pytest.mark.asyncio
    async def test_missing_credential_returns_default(self):
        classifier, provider = make_classifier(api_key=None)
        result = await classifier.classify("hello")
        assert result.suggested_model == "gpt-4o"
        assert not provider.calls

    @pytest.mark.asyncio
    async def test_blank_content_skips_backend(self):
        classifier, provider = make_classifier(reply=router_reply())
        result = await classifier.classify("   ")
        assert result.intent is Intent.CHAT
        assert not provider.calls

    @pytest.mark.asyncio
    async def test_last_model_hint_is_included(self):
        classifier, provider = make_classifier(reply=router_reply())
        await classifier.classify("continue", last_model_hint="gemini-1.5-pro")
        _, messages = provider.calls[0]
        assert "gemini-1.5-pro" in messages[1].content

    @pytest.mark.asyncio
    async def test_long_content_is_truncated(self):
        classifier, provider = make_classifier(reply=router_reply())
        await classifier.classify("x" * (MAX_PREVIEW_CHARS + 500))
        _, messages = provider.calls[0]
        assert messages[1].content.count("x") == MAX_PREVIEW_CHARS


class TestParsing:
    def test_strip_code_fences(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    def test_reason_defaults_to_empty(self):
        result = parse_classification(json.dumps({"intent": "analysis", "suggestedModel": "gpt-4o"}))
        assert result.intent is Intent.ANALYSIS
        assert result.reason == ""

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            parse_classification("{not json")
