"""
Remote Provider

Analysis backed by an OpenAI-compatible chat completion API.

Design:
    - Fail fast: without an API key no request is attempted.
    - SDK retries are disabled (max_retries=0). Fallback to the other
      provider is the orchestrator's job and retry is opt-in only.
    - An unparseable model reply degrades to a neutral placeholder result
      instead of failing, so the note still gets an embedding.
"""

from __future__ import annotations

import logging
from typing import Any, Final

import openai
from openai import AsyncOpenAI

from notelens.core.config import settings
from notelens.errors import MalformedResponse, ProviderTimeout, ProviderUnavailable
from notelens.models.schemas import MAX_KEYWORDS, AnalysisResult, Note, Sentiment
from notelens.services.parsing import parse_response_json

logger = logging.getLogger(__name__)

MAX_TOKENS: Final[int] = 1024

ANALYSIS_PROMPT: Final[
    str
] = """Please analyze the following note and provide a JSON response with:
1. A concise summary (max 100 words)
2. Sentiment analysis (positive, neutral, or negative)
3. Key keywords/tags (max 5)

Note Title: {title}
Note Content: {content}

Please respond with valid JSON in this format:
{{
  "summary": "...",
  "sentiment": "positive|neutral|negative",
  "keywords": ["keyword1", "keyword2", ...]
}}"""

SUMMARY_PROMPT: Final[str] = (
    "Please provide a concise summary of the following text (max 100 words):\n\n{content}"
)
KEYWORDS_PROMPT: Final[str] = (
    "Extract 5 key keywords or tags from the following text. "
    "Respond with a JSON array of strings:\n\n{content}"
)
SENTIMENT_PROMPT: Final[str] = (
    "Analyze the sentiment of the following text. Respond with only one word: "
    '"positive", "neutral", or "negative":\n\n{content}'
)

_SENTIMENTS: Final[frozenset[str]] = frozenset({"positive", "neutral", "negative"})

DEGRADED_RESULT: Final[AnalysisResult] = AnalysisResult(
    summary="Unable to generate summary",
    sentiment="neutral",
    keywords=[],
)


class RemoteProvider:
    """
    ``AnalysisProvider`` calling a hosted text-completion model.

    Usage::

        provider = RemoteProvider(api_key="sk-...")
        result = await provider.analyze_note(note)

    Args:
        api_key: API credential (default from config). Required for any call.
        model: Chat model name (default from config).
        base_url: Optional custom endpoint for compatible gateways.
        timeout: Request timeout in seconds (default from config).
        client: Pre-built client, mainly for tests.
    """

    name = "remote"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_MODEL
        self._base_url = base_url or settings.OPENAI_BASE_URL
        self._timeout = timeout or settings.OPENAI_TIMEOUT_SECONDS
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def analyze_note(self, note: Note) -> AnalysisResult:
        """
        Summary, sentiment and keywords for a note in one completion.

        Raises:
            ProviderUnavailable: Missing key, network failure, error status
                or empty reply.
            ProviderTimeout: The request timed out.
        """
        prompt = ANALYSIS_PROMPT.format(title=note.title, content=note.content)
        text = await self._complete(prompt)

        try:
            data = parse_response_json(text, provider=self.name)
        except MalformedResponse:
            logger.warning("Unparseable analysis for note %s, using placeholder", note.id)
            return DEGRADED_RESULT.model_copy(deep=True)

        if not isinstance(data, dict):
            logger.warning("Analysis for note %s is not a JSON object, using placeholder", note.id)
            return DEGRADED_RESULT.model_copy(deep=True)

        return AnalysisResult(
            summary=_as_text(data.get("summary")) or "No summary available",
            sentiment=_as_sentiment(data.get("sentiment")),
            keywords=_as_keywords(data.get("keywords"))[:MAX_KEYWORDS],
        )

    async def generate_summary(self, content: str) -> str:
        return (await self._complete(SUMMARY_PROMPT.format(content=content))).strip()

    async def extract_keywords(self, content: str) -> list[str]:
        text = await self._complete(KEYWORDS_PROMPT.format(content=content))
        try:
            return _as_keywords(parse_response_json(text, provider=self.name))
        except MalformedResponse:
            return []

    async def analyze_sentiment(self, content: str) -> Sentiment:
        text = await self._complete(SENTIMENT_PROMPT.format(content=content))
        return _as_sentiment(text.strip().strip('".').strip())

    async def aclose(self) -> None:
        """Release the HTTP connection pool, if a client was created."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialisation of the API client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def _complete(self, prompt: str) -> str:
        """
        Run one single-turn completion and return the reply text.

        Raises:
            ProviderUnavailable: See ``analyze_note``.
            ProviderTimeout: The request timed out.
        """
        if not self._api_key:
            raise ProviderUnavailable("API key not configured", provider=self.name)

        try:
            response = await self._get_client().chat.completions.create(
                model=self._model,
                max_tokens=MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"Request timed out: {e}", provider=self.name) from e
        except openai.APIConnectionError as e:
            raise ProviderUnavailable(f"Connection failed: {e}", provider=self.name) from e
        except openai.APIStatusError as e:
            logger.error("Remote API error %d: %s", e.status_code, e.message)
            raise ProviderUnavailable(
                f"API returned status {e.status_code}", provider=self.name
            ) from e
        except openai.OpenAIError as e:
            raise ProviderUnavailable(f"Request failed: {e}", provider=self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderUnavailable("No response from remote service", provider=self.name)

        logger.info(
            "Remote completion received (model=%s, length=%d)",
            self._model,
            len(content),
        )
        return content


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_sentiment(value: Any) -> Sentiment:
    if isinstance(value, str) and value.strip().lower() in _SENTIMENTS:
        return value.strip().lower()  # type: ignore[return-value]
    return "neutral"


def _as_keywords(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item).strip()]
