"""
Local Analysis Worker

Isolated execution context for the local-compute provider. Runs as its own
process and talks to ``WorkerChannel`` exclusively through JSON lines:

    stdin   {"id": 7, "task": "analyze", "content": "...", "title": "...", "noteId": "..."}
    stdout  {"id": 7, "result": {...}}   or   {"id": 7, "error": "..."}

A single ``{"ready": true}`` line is written at startup. stdout carries
nothing else, so logging goes to stderr.

Start manually (for debugging):
    echo '{"id": 1, "task": "sentiment", "content": "great day"}' | python -m notelens.worker
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections import Counter
from typing import IO, Any, Final

from notelens.models.schemas import MAX_KEYWORDS
from notelens.services.text import STOP_WORDS, tokenize

logger = logging.getLogger(__name__)

TASKS: Final[frozenset[str]] = frozenset({"analyze", "summarize", "sentiment", "keywords"})
KEYWORDS_TASK_LIMIT: Final[int] = 10

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_ALPHA = re.compile(r"^[a-zA-Z]+$")

POSITIVE_WORDS: Final[frozenset[str]] = frozenset(
    {
        "good", "great", "excellent", "amazing", "wonderful", "fantastic",
        "love", "like", "happy", "joy", "pleased", "satisfied", "excited",
        "thrilled", "delighted", "awesome", "brilliant", "perfect",
        "beautiful", "success", "win", "achieve",
    }
)

NEGATIVE_WORDS: Final[frozenset[str]] = frozenset(
    {
        "bad", "terrible", "awful", "hate", "dislike", "sad", "angry",
        "frustrated", "disappointed", "upset", "worried", "concerned",
        "problem", "issue", "fail", "wrong", "error", "mistake",
        "difficult", "hard", "struggle", "pain",
    }
)


# ---------------------------------------------------------------------------
# Local analysis
# ---------------------------------------------------------------------------


def summarize(content: str) -> str:
    """Extractive summary: first and last sentence, or the text itself if short."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(content) if s.strip()]
    if len(sentences) <= 2:
        return content
    return f"{sentences[0]}. {sentences[-1]}."


def analyze_sentiment(content: str) -> str:
    """
    Lexicon-based sentiment label.

    A side wins only if it outnumbers the other and reaches 5% of the
    tokens (at least one hit).
    """
    tokens = tokenize(content)
    positive = sum(1 for token in tokens if token in POSITIVE_WORDS)
    negative = sum(1 for token in tokens if token in NEGATIVE_WORDS)
    threshold = max(1, len(tokens) * 0.05)

    if positive > negative and positive >= threshold:
        return "positive"
    if negative > positive and negative >= threshold:
        return "negative"
    return "neutral"


def extract_keywords(content: str, limit: int = KEYWORDS_TASK_LIMIT) -> list[str]:
    """Most frequent non-stop-words; ties keep first-seen order."""
    candidates = [
        token
        for token in tokenize(content)
        if token not in STOP_WORDS and len(token) > 2 and _ALPHA.match(token)
    ]
    return [word for word, _ in Counter(candidates).most_common(limit)]


def analyze_note(content: str, title: str = "") -> dict[str, Any]:
    """Full analysis: summary of the body, sentiment and keywords over title + body."""
    full_text = f"{title} {content}"
    return {
        "summary": summarize(content),
        "sentiment": analyze_sentiment(full_text),
        "keywords": extract_keywords(full_text, limit=MAX_KEYWORDS),
    }


# ---------------------------------------------------------------------------
# Message loop
# ---------------------------------------------------------------------------


def handle_message(message: dict[str, Any]) -> dict[str, Any]:
    """Run one request and build the correlated reply. Never raises."""
    message_id = message.get("id")
    task = message.get("task")
    content = message.get("content") or ""

    try:
        if task == "analyze":
            result: Any = analyze_note(content, message.get("title") or "")
        elif task == "summarize":
            result = summarize(content)
        elif task == "sentiment":
            result = analyze_sentiment(content)
        elif task == "keywords":
            limit = message.get("limit")
            result = extract_keywords(
                content, limit=limit if isinstance(limit, int) and limit > 0 else KEYWORDS_TASK_LIMIT
            )
        else:
            raise ValueError(f"Unknown task: {task}")
    except Exception as e:
        logger.warning("Task %r (id=%s) failed: %s", task, message_id, e)
        return {"id": message_id, "error": str(e) or type(e).__name__}

    return {"id": message_id, "result": result}


def _write(stream: IO[str], payload: dict[str, Any]) -> None:
    stream.write(json.dumps(payload) + "\n")
    stream.flush()


def serve(stdin: IO[str], stdout: IO[str]) -> None:
    """Announce readiness, then answer requests until stdin closes."""
    _write(stdout, {"ready": True})

    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            logger.error("Discarding undecodable request line (%d chars)", len(line))
            continue
        if not isinstance(message, dict):
            logger.error("Discarding non-object request: %r", message)
            continue
        _write(stdout, handle_message(message))


def main() -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        serve(sys.stdin, sys.stdout)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
