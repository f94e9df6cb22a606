"""
Lexical Utilities

Tokenization, stop-word filtering and normalization shared by the
embedding generator and the local worker. Pure functions, no state.
"""

from __future__ import annotations

import math
import re
from typing import Final

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

WORDS_PER_MINUTE: Final[int] = 200

STOP_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "and", "to", "of", "a", "in", "is", "it", "you", "that",
        "he", "was", "for", "on", "are", "as", "with", "his", "they", "i",
        "at", "be", "this", "have", "from", "or", "one", "had", "by", "word",
        "but", "not", "what", "all", "were", "we", "when", "your", "can", "said",
        "there", "each", "which", "she", "do", "how", "their", "if", "will", "up",
        "other", "about", "out", "many", "then", "them", "these", "so", "some",
    }
)


def tokenize(text: str) -> list[str]:
    """
    Split text into lowercase word tokens.

    Punctuation becomes whitespace, so ``"don't"`` yields ``["don", "t"]``.
    """
    return _NON_WORD.sub(" ", text.lower()).split()


def remove_stop_words(tokens: list[str]) -> list[str]:
    return [token for token in tokens if token not in STOP_WORDS]


def normalize(text: str) -> str:
    """Trim, collapse runs of whitespace and drop punctuation."""
    return _NON_WORD.sub("", _WHITESPACE.sub(" ", text.strip()))


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def word_count(text: str) -> int:
    return len(text.split())


def reading_time(text: str) -> int:
    """Estimated reading time in whole minutes (0 for empty text)."""
    return math.ceil(word_count(text) / WORDS_PER_MINUTE)
