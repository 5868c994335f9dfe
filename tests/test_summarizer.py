"""Tests for opano.core.summarizer and the LLM routing in opano.core.llm."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from opano.core import llm
from opano.core.llm import LLMNotConfigured
from opano.core.summarizer import build_prompt, summarize_conversation


@pytest.fixture(autouse=True)
def _reset_route():
    llm._route = None
    yield
    llm._route = None


def _settings(**overrides):
    values = {"LLM_PROVIDER": "gemini", "LLM_MODEL": "", "LLM_API_KEY": "key"}
    values.update(overrides)
    return SimpleNamespace(**values)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class TestBuildPrompt:
    def test_contains_label_and_lines_in_order(self):
        prompt = build_prompt("general", ["Ann: hi", "Bob: hello"])
        assert 'channel "general"' in prompt
        assert prompt.index("Ann: hi") < prompt.index("Bob: hello")
        assert prompt.rstrip().endswith("Summary:")

    def test_long_conversations_keep_latest(self):
        lines = [f"U: message {i}" for i in range(250)]
        prompt = build_prompt("general", lines)
        assert "U: message 49\n" not in prompt
        assert "U: message 50\n" in prompt
        assert "U: message 249" in prompt


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class TestSummarizeConversation:
    @pytest.mark.asyncio
    async def test_success(self):
        with patch("opano.core.summarizer.complete", AsyncMock(return_value="  Plans agreed.  ")):
            result = await summarize_conversation("general", ["Ann: ship it"])
        assert result.ok
        assert result.summary == "Plans agreed."

    @pytest.mark.asyncio
    async def test_empty_conversation_skips_llm(self):
        mock_complete = AsyncMock()
        with patch("opano.core.summarizer.complete", mock_complete):
            result = await summarize_conversation("general", [])
        assert result.error == "No messages to summarize"
        mock_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_configured(self):
        with patch("opano.core.summarizer.complete", AsyncMock(side_effect=LLMNotConfigured("no key"))):
            result = await summarize_conversation("general", ["Ann: hi"])
        assert result.ok is False
        assert result.error == "Summaries are not configured"

    @pytest.mark.asyncio
    async def test_provider_error(self):
        with patch("opano.core.summarizer.complete", AsyncMock(side_effect=RuntimeError("503"))):
            result = await summarize_conversation("general", ["Ann: hi"])
        assert result.error == "Summary unavailable: 503"

    @pytest.mark.asyncio
    async def test_blank_model_output(self):
        with patch("opano.core.summarizer.complete", AsyncMock(return_value="   ")):
            result = await summarize_conversation("general", ["Ann: hi"])
        assert result.ok is False
        assert "empty" in result.error


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class TestRouting:
    def test_default_model_per_provider(self):
        with patch("opano.config.settings", _settings(LLM_PROVIDER="OpenAI")):
            route = llm._resolve_route()
        assert route.provider == "openai"
        assert route.model == "gpt-4o-mini"
        assert route.call is llm._call_openai

    def test_model_override(self):
        with patch("opano.config.settings", _settings(LLM_PROVIDER="anthropic", LLM_MODEL="custom")):
            assert llm._resolve_route().model == "custom"

    def test_unknown_provider(self):
        with patch("opano.config.settings", _settings(LLM_PROVIDER="mystery")):
            with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
                llm._resolve_route()

    def test_missing_key(self):
        with patch("opano.config.settings", _settings(LLM_API_KEY="")):
            with pytest.raises(LLMNotConfigured):
                llm._resolve_route()

    @pytest.mark.asyncio
    async def test_complete_uses_route_once(self):
        call = AsyncMock(return_value="done")
        with patch("opano.config.settings", _settings(LLM_PROVIDER="cohere")), \
             patch.dict(llm._PROVIDERS, {"cohere": (call, "command-x")}):
            assert await llm.complete("sys", "prompt", max_tokens=64) == "done"
            await llm.complete("sys", "again")

        call.assert_any_await("key", "command-x", "sys", "prompt", 64)
        assert call.await_count == 2
        assert llm._route.provider == "cohere"
