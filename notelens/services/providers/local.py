"""
Local Provider

Analysis backed by the local worker process. Works offline and costs
nothing, but the heuristics are simple: extractive summary, lexicon
sentiment and frequency keywords.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from notelens.errors import MalformedResponse
from notelens.models.schemas import AnalysisResult, Note, Sentiment
from notelens.services.worker_channel import WorkerChannel

logger = logging.getLogger(__name__)

_SENTIMENTS: frozenset[str] = frozenset({"positive", "neutral", "negative"})


class LocalProvider:
    """
    ``AnalysisProvider`` over a ``WorkerChannel``.

    Channel errors and timeouts surface unchanged (they already are
    ProviderErrors); replies that do not match the expected shape raise
    MalformedResponse.
    """

    name = "local"

    def __init__(self, channel: WorkerChannel) -> None:
        self._channel = channel

    @property
    def channel(self) -> WorkerChannel:
        return self._channel

    async def analyze_note(self, note: Note) -> AnalysisResult:
        raw = await self._channel.send(
            "analyze",
            {"content": note.content, "title": note.title, "noteId": note.id},
        )
        try:
            return AnalysisResult.model_validate(raw)
        except ValidationError as e:
            raise MalformedResponse(
                f"Unexpected analysis reply for note {note.id}: {e.error_count()} error(s)",
                provider=self.name,
            ) from e

    async def summarize(self, content: str) -> str:
        return self._expect(await self._channel.send("summarize", {"content": content}), str)

    async def analyze_sentiment(self, content: str) -> Sentiment:
        sentiment = self._expect(
            await self._channel.send("sentiment", {"content": content}), str
        )
        if sentiment not in _SENTIMENTS:
            raise MalformedResponse(f"Unknown sentiment {sentiment!r}", provider=self.name)
        return sentiment  # type: ignore[return-value]

    async def extract_keywords(self, content: str, limit: int | None = None) -> list[str]:
        payload: dict[str, Any] = {"content": content}
        if limit is not None:
            payload["limit"] = limit
        keywords = self._expect(await self._channel.send("keywords", payload), list)
        return [str(k) for k in keywords]

    async def aclose(self) -> None:
        """Terminate the worker channel."""
        await self._channel.terminate()

    def _expect(self, value: Any, kind: type) -> Any:
        if not isinstance(value, kind):
            raise MalformedResponse(
                f"Expected {kind.__name__} from worker, got {type(value).__name__}",
                provider=self.name,
            )
        return value
