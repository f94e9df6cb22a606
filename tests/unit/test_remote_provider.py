"""
Remote Provider Unit Tests

Tests for the chat-completion provider with a mocked OpenAI client.
No external API calls - runs without network or API keys.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
from conftest import make_note

from notelens.errors import ProviderTimeout, ProviderUnavailable
from notelens.services.providers.remote import DEGRADED_RESULT, RemoteProvider

REQUEST = httpx.Request("POST", "https://api.test/v1/chat/completions")


def _response(content):
    """Minimal object matching the SDK's chat completion structure."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(content=None, error=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_response(content), side_effect=error
    )
    client.close = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# analyze_note
# ---------------------------------------------------------------------------


class TestAnalyzeNote:
    """Single-completion note analysis."""

    @pytest.mark.asyncio
    async def test_parses_reply(self):
        client = _client(
            '```json\n{"summary": "Short.", "sentiment": "Positive", '
            '"keywords": ["a", "b", "c", "d", "e", "f"]}\n```'
        )
        provider = RemoteProvider(api_key="sk-test", model="test-model", client=client)
        note = make_note("Body text", title="Title")

        result = await provider.analyze_note(note)

        assert result.summary == "Short."
        assert result.sentiment == "positive"
        assert result.keywords == ["a", "b", "c", "d", "e"]

        client.chat.completions.create.assert_called_once()
        _, kwargs = client.chat.completions.create.call_args
        assert kwargs["model"] == "test-model"
        prompt = kwargs["messages"][0]["content"]
        assert "Note Title: Title" in prompt
        assert "Note Content: Body text" in prompt

    @pytest.mark.asyncio
    async def test_missing_fields_get_defaults(self):
        provider = RemoteProvider(api_key="sk-test", client=_client('{"sentiment": "angry"}'))

        result = await provider.analyze_note(make_note())

        assert result.summary == "No summary available"
        assert result.sentiment == "neutral"
        assert result.keywords == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["I think this note is great!", "[1, 2, 3]"])
    async def test_unusable_reply_degrades(self, reply):
        provider = RemoteProvider(api_key="sk-test", client=_client(reply))

        result = await provider.analyze_note(make_note())

        assert result == DEGRADED_RESULT

    @pytest.mark.asyncio
    async def test_missing_key_fails_fast(self):
        client = _client('{"summary": "x"}')
        provider = RemoteProvider(api_key="", client=client)

        with pytest.raises(ProviderUnavailable, match="API key not configured") as exc_info:
            await provider.analyze_note(make_note())

        assert exc_info.value.provider == "remote"
        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_reply_is_unavailable(self):
        provider = RemoteProvider(api_key="sk-test", client=_client(""))

        with pytest.raises(ProviderUnavailable, match="No response"):
            await provider.analyze_note(make_note())


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    """SDK exceptions become ProviderErrors."""

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = RemoteProvider(
            api_key="sk-test", client=_client(error=openai.APITimeoutError(request=REQUEST))
        )

        with pytest.raises(ProviderTimeout):
            await provider.analyze_note(make_note())

    @pytest.mark.asyncio
    async def test_connection_error(self):
        provider = RemoteProvider(
            api_key="sk-test", client=_client(error=openai.APIConnectionError(request=REQUEST))
        )

        with pytest.raises(ProviderUnavailable, match="Connection failed"):
            await provider.analyze_note(make_note())

    @pytest.mark.asyncio
    async def test_error_status(self):
        error = openai.APIStatusError(
            "Service Unavailable",
            response=httpx.Response(503, request=REQUEST),
            body=None,
        )
        provider = RemoteProvider(api_key="sk-test", client=_client(error=error))

        with pytest.raises(ProviderUnavailable, match="503"):
            await provider.analyze_note(make_note())


# ---------------------------------------------------------------------------
# Single-purpose calls and lifecycle
# ---------------------------------------------------------------------------


class TestOtherCalls:
    """Summary, keywords, sentiment and client handling."""

    @pytest.mark.asyncio
    async def test_generate_summary(self):
        provider = RemoteProvider(api_key="sk-test", client=_client("  A summary.  "))
        assert await provider.generate_summary("text") == "A summary."

    @pytest.mark.asyncio
    async def test_extract_keywords(self):
        provider = RemoteProvider(api_key="sk-test", client=_client('["alpha", "beta"]'))
        assert await provider.extract_keywords("text") == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_extract_keywords_malformed(self):
        provider = RemoteProvider(api_key="sk-test", client=_client("alpha, beta"))
        assert await provider.extract_keywords("text") == []

    @pytest.mark.asyncio
    async def test_analyze_sentiment(self):
        provider = RemoteProvider(api_key="sk-test", client=_client('"Negative".'))
        assert await provider.analyze_sentiment("text") == "negative"

    @pytest.mark.asyncio
    async def test_client_created_lazily_without_retries(self):
        with patch("notelens.services.providers.remote.AsyncOpenAI") as MockClient:
            mock_instance = MockClient.return_value
            mock_instance.chat.completions.create = AsyncMock(return_value=_response("ok"))
            mock_instance.close = AsyncMock()

            provider = RemoteProvider(api_key="sk-test", base_url="https://gw.test/v1")
            MockClient.assert_not_called()

            assert await provider.generate_summary("text") == "ok"
            await provider.aclose()

        _, kwargs = MockClient.call_args
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["base_url"] == "https://gw.test/v1"
        assert kwargs["max_retries"] == 0
        mock_instance.close.assert_awaited_once()

    def test_is_configured(self):
        assert RemoteProvider(api_key="sk-test").is_configured
        assert not RemoteProvider(api_key="").is_configured
