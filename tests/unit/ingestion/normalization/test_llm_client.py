"""
Unit tests for the completion client wrapper. No network calls are made.
"""

import pytest
from pydantic import SecretStr

from citypulse.configs.settings import Settings
from citypulse.ingestion.normalization.errors import LLMUnavailableError
from citypulse.ingestion.normalization.llm_client import (
    LangChainLLMClient,
    _content_to_text,
    create_llm_client,
)


class FakeResponse:
    def __init__(self, content):
        self.content = content


class FakeChatModel:
    def __init__(self, content):
        self.content = content
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        return FakeResponse(self.content)


class TestLangChainLLMClient:
    def test_default_model_per_provider(self):
        client = LangChainLLMClient(provider=" Anthropic ")
        assert client.provider == "anthropic"
        assert client.model_name.startswith("claude")

    def test_unavailable_without_key(self):
        client = LangChainLLMClient(provider="openai", api_key=None)
        assert client.is_available is False

    def test_complete_without_key_raises(self):
        client = LangChainLLMClient(provider="openai", api_key=None)
        with pytest.raises(LLMUnavailableError) as exc:
            client.complete("system", "user")
        assert exc.value.provider == "openai"

    def test_unknown_provider(self):
        client = LangChainLLMClient(provider="mystery", api_key="key")
        with pytest.raises(ValueError):
            client.complete("system", "user")

    def test_complete_sends_system_and_user(self):
        client = LangChainLLMClient(provider="openai", api_key="key")
        fake = FakeChatModel('{"eventName": "Jazz Night"}')
        client._llm = fake

        assert client.complete("be precise", "blob text") == '{"eventName": "Jazz Night"}'
        assert [m.content for m in fake.messages] == ["be precise", "blob text"]


def test_content_to_text_flattens_parts():
    parts = [{"type": "text", "text": "{\"a\""}, {"type": "image"}, ": 1}"]
    assert _content_to_text(parts) == '{"a": 1}'
    assert _content_to_text("plain") == "plain"
    assert _content_to_text(None) == ""


class TestCreateLLMClient:
    def test_disabled(self):
        settings = Settings(_env_file=None, LLM_ENABLED=False, OPENAI_API_KEY=SecretStr("key"))
        assert create_llm_client(settings) is None

    def test_missing_key(self):
        settings = Settings(_env_file=None, LLM_ENABLED=True, LLM_PROVIDER="anthropic", ANTHROPIC_API_KEY=None)
        assert create_llm_client(settings) is None
