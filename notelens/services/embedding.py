"""
Embedding Service

Deterministic, offline feature-vector embeddings for notes.

Vector layout (155 floats):
    - [0, 150):   relative frequency of each vocabulary word
    - 150:        lexical sentiment  (positive - negative) / tokens, in [-1, 1]
    - 151:        lexical complexity mean token length / 10, capped at 1
    - 152:        length             characters / 10,000, capped at 1
    - 153:        question density   count('?') / 10, capped at 1
    - 154:        exclamation density count('!') / 10, capped at 1

Design choices:
    - No model, no network: similarity keeps working when both analysis
      providers are down, as long as metadata was stored earlier.
    - The vocabulary order is part of the stored-vector format. Appending
      or reordering words invalidates every persisted embedding.
    - asyncio.to_thread for the async entry point so long notes never
      block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Final, NamedTuple

from notelens.errors import EmbeddingInvariantViolation
from notelens.services.text import tokenize

logger = logging.getLogger(__name__)

VOCABULARY: Final[tuple[str, ...]] = (
    "the", "and", "to", "of", "a", "in", "is", "it", "you", "that",
    "he", "was", "for", "on", "are", "as", "with", "his", "they", "i",
    "at", "be", "this", "have", "from", "or", "one", "had", "by", "word",
    "but", "not", "what", "all", "were", "we", "when", "your", "can", "said",
    "there", "each", "which", "she", "do", "how", "their", "if", "will", "up",
    "other", "about", "out", "many", "then", "them", "these", "so", "some", "her",
    "would", "make", "like", "into", "him", "has", "two", "more", "very", "after",
    "words", "first", "been", "who", "oil", "its", "now", "find", "long", "down",
    "way", "get", "may", "new", "sound", "take", "only", "little", "work", "know",
    "place", "year", "live", "me", "back", "give", "most", "time", "good", "sentence",
    "man", "think", "say", "great", "where", "help", "through", "much", "before", "line",
    "right", "too", "mean", "old", "any", "same", "tell", "boy", "follow", "came",
    "want", "show", "also", "around", "form", "three", "small", "set", "put", "end",
    "could", "people", "day", "than", "just", "see", "no", "my", "our", "because",
    "should", "well", "even", "still", "here", "thing", "need", "look", "feel", "while",
)

POSITIVE_WORDS: Final[frozenset[str]] = frozenset(
    {
        "good", "great", "excellent", "amazing", "wonderful", "fantastic",
        "love", "like", "happy", "joy", "excited", "pleased", "satisfied",
        "positive", "optimistic", "appreciate", "grateful", "thankful",
        "admire", "enjoy",
    }
)

NEGATIVE_WORDS: Final[frozenset[str]] = frozenset(
    {
        "bad", "terrible", "awful", "hate", "dislike", "sad", "angry",
        "frustrated", "disappointed", "upset", "negative", "pessimistic",
        "annoyed", "irritated", "regret", "dissatisfied", "unhappy",
    }
)

SEMANTIC_FEATURE_COUNT: Final[int] = 5
EMBEDDING_DIMENSION: Final[int] = len(VOCABULARY) + SEMANTIC_FEATURE_COUNT


class SemanticFeatures(NamedTuple):
    """The five hand-computed scalars appended after the frequency block."""

    sentiment: float
    complexity: float
    length: float
    questions: float
    exclamations: float


class EmbeddingGenerator:
    """
    Turns note text into a fixed-length feature vector.

    Stateless apart from the immutable vocabulary, so one instance can be
    shared by every orchestrator and request.

    Usage::

        generator = EmbeddingGenerator()
        vector = generator.generate("I love this! Great day.")
        assert len(vector) == generator.dimension
        assert generator.semantic_features("I love this!").sentiment > 0
    """

    def __init__(self, vocabulary: tuple[str, ...] = VOCABULARY) -> None:
        if len(set(vocabulary)) != len(vocabulary):
            raise ValueError("Embedding vocabulary contains duplicate words")
        self._vocabulary = vocabulary

    @property
    def dimension(self) -> int:
        """Length of every vector this generator produces."""
        return len(self._vocabulary) + SEMANTIC_FEATURE_COUNT

    def generate(self, text: str) -> list[float]:
        """
        Generate the embedding for ``text``.

        Never fails on ordinary input; empty text yields an all-zero
        frequency block.

        Raises:
            EmbeddingInvariantViolation: If the assembled vector does not
                have ``dimension`` entries.
        """
        tokens = tokenize(text)
        vector = self._frequencies(tokens)
        vector.extend(self._features(text, tokens))

        if len(vector) != self.dimension:
            raise EmbeddingInvariantViolation(self.dimension, len(vector))
        return vector

    async def embed(self, text: str) -> list[float]:
        """Async wrapper running ``generate`` in the default thread pool."""
        return await asyncio.to_thread(self.generate, text)

    def semantic_features(self, text: str) -> SemanticFeatures:
        """Named view of the five trailing scalars for ``text``."""
        return self._features(text, tokenize(text))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _frequencies(self, tokens: list[str]) -> list[float]:
        if not tokens:
            return [0.0] * len(self._vocabulary)

        counts: dict[str, int] = {}
        for token in tokens:
            counts[token] = counts.get(token, 0) + 1

        total = len(tokens)
        return [counts.get(word, 0) / total for word in self._vocabulary]

    @staticmethod
    def _features(text: str, tokens: list[str]) -> SemanticFeatures:
        return SemanticFeatures(
            sentiment=_sentiment_score(tokens),
            complexity=_complexity_score(tokens),
            length=min(len(text) / 10_000, 1.0),
            questions=min(text.count("?") / 10, 1.0),
            exclamations=min(text.count("!") / 10, 1.0),
        )


def _sentiment_score(tokens: list[str]) -> float:
    if not tokens:
        return 0.0
    score = 0
    for token in tokens:
        if token in POSITIVE_WORDS:
            score += 1
        if token in NEGATIVE_WORDS:
            score -= 1
    return score / len(tokens)


def _complexity_score(tokens: list[str]) -> float:
    if not tokens:
        return 0.0
    mean_length = sum(len(token) for token in tokens) / len(tokens)
    return min(mean_length / 10, 1.0)


# Module-level singleton for convenience
embedding_generator = EmbeddingGenerator()


def generate_embedding(text: str) -> list[float]:
    """Generate an embedding with the shared generator."""
    return embedding_generator.generate(text)
