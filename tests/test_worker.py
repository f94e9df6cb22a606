"""
Local Worker Unit Tests

The worker's heuristics and its JSON-lines message loop, driven through
in-memory streams.
"""

from __future__ import annotations

import io
import json

import pytest

from notelens.worker import (
    analyze_note,
    analyze_sentiment,
    extract_keywords,
    handle_message,
    serve,
    summarize,
)

# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


class TestSummarize:
    """Extractive summary."""

    def test_short_text_returned_unchanged(self):
        text = "Just one sentence. And another!"
        assert summarize(text) == text

    def test_first_and_last_sentence(self):
        text = "Intro here. Middle part. More middle? Final words!"
        assert summarize(text) == "Intro here. Final words."

    def test_empty(self):
        assert summarize("") == ""


class TestSentiment:
    """Lexicon sentiment."""

    def test_positive(self):
        assert analyze_sentiment("What a great and wonderful day") == "positive"

    def test_negative(self):
        assert analyze_sentiment("This is a terrible problem") == "negative"

    def test_neutral_when_balanced(self):
        assert analyze_sentiment("good but bad") == "neutral"

    def test_neutral_without_hits(self):
        assert analyze_sentiment("The meeting is at noon") == "neutral"

    def test_threshold_scales_with_length(self):
        # One hit in 40 tokens stays below the 5% threshold
        text = "great " + "filler " * 39
        assert analyze_sentiment(text) == "neutral"


class TestKeywords:
    """Frequency keywords."""

    def test_most_frequent_first(self):
        text = "python code python tests python code docs"
        assert extract_keywords(text) == ["python", "code", "tests", "docs"]

    def test_drops_stop_words_short_and_numeric_tokens(self):
        assert extract_keywords("the an ox 2024 v2 release") == ["release"]

    def test_limit(self):
        assert extract_keywords("alpha beta gamma delta", limit=2) == ["alpha", "beta"]

    def test_default_limit_is_ten(self):
        text = " ".join(f"word{chr(97 + i)}" for i in range(20))
        assert len(extract_keywords(text)) == 10


class TestAnalyzeNote:
    """Full analysis."""

    def test_shape(self):
        result = analyze_note("Great progress on the release. Tests pass.", title="Release notes")

        assert set(result) == {"summary", "sentiment", "keywords"}
        assert result["sentiment"] == "positive"
        assert "release" in result["keywords"]
        assert len(result["keywords"]) <= 5

    def test_keywords_capped_at_five(self):
        content = "alpha beta gamma delta epsilon zeta theta iota kappa lambda"
        assert len(analyze_note(content)["keywords"]) == 5


# ---------------------------------------------------------------------------
# Message handling
# ---------------------------------------------------------------------------


class TestHandleMessage:
    """Request to reply mapping."""

    def test_result_reply_keeps_id(self):
        reply = handle_message({"id": 3, "task": "sentiment", "content": "great day"})
        assert reply == {"id": 3, "result": "positive"}

    def test_analyze(self):
        reply = handle_message({"id": 1, "task": "analyze", "content": "x", "title": "t"})
        assert reply["id"] == 1
        assert set(reply["result"]) == {"summary", "sentiment", "keywords"}

    def test_keywords_limit(self):
        reply = handle_message(
            {"id": 2, "task": "keywords", "content": "alpha beta gamma", "limit": 1}
        )
        assert reply == {"id": 2, "result": ["alpha"]}

    def test_unknown_task_is_error_reply(self):
        reply = handle_message({"id": 4, "task": "translate", "content": "x"})
        assert reply["id"] == 4
        assert "Unknown task" in reply["error"]
        assert "result" not in reply

    def test_missing_content_is_empty(self):
        assert handle_message({"id": 5, "task": "summarize"}) == {"id": 5, "result": ""}


class TestServe:
    """The JSON-lines loop."""

    @pytest.fixture
    def run(self):
        def _run(*lines: str) -> list[dict]:
            stdout = io.StringIO()
            serve(io.StringIO("".join(line + "\n" for line in lines)), stdout)
            return [json.loads(line) for line in stdout.getvalue().splitlines()]

        return _run

    def test_ready_first(self, run):
        assert run() == [{"ready": True}]

    def test_replies_in_order(self, run):
        replies = run(
            json.dumps({"id": 1, "task": "summarize", "content": "Hi."}),
            json.dumps({"id": 2, "task": "sentiment", "content": "awful"}),
        )
        assert replies == [
            {"ready": True},
            {"id": 1, "result": "Hi."},
            {"id": 2, "result": "negative"},
        ]

    def test_skips_blank_and_undecodable_lines(self, run):
        replies = run(
            "",
            "not json",
            "[1, 2]",
            json.dumps({"id": 9, "task": "keywords", "content": "alpha"}),
        )
        assert replies == [{"ready": True}, {"id": 9, "result": ["alpha"]}]
