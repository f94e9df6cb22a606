"""
NoteLens Domain Schemas

Pydantic models for the analysis pipeline.
Defines the core data structures for notes, provider output and the
metadata records handed to the storage collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from notelens.errors import ProviderError

Sentiment = Literal["positive", "neutral", "negative"]

MAX_KEYWORDS: int = 5


class Note(BaseModel):
    """
    A user-authored text document.

    Title or content edits invalidate prior metadata; a new analysis must
    be run. Stale metadata is not pruned here.

    Attributes:
        id: Opaque identifier (UUID4 string by default).
        title: Note title.
        content: Free-text body, may be empty.
        created_at: UTC creation timestamp.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = Field(default="New Note")
    content: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
    )


class AnalysisResult(BaseModel):
    """Provider output for one note. Ephemeral."""

    summary: str
    sentiment: Sentiment
    keywords: list[str] = Field(
        default_factory=list,
        max_length=MAX_KEYWORDS,
        description="Up to 5 tags, most relevant first",
    )


class NoteMetadata(BaseModel):
    """
    Insights for one note, produced by the orchestrator and persisted by
    the storage collaborator (one-to-one with ``Note.id``).

    The embedding length is the same for every instance in the system.
    """

    note_id: str
    summary: str
    sentiment: Sentiment
    keywords: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None
    last_analyzed: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
    )


class SimilarNote(BaseModel):
    """A related note; derived on demand, never persisted."""

    note: Note
    similarity: float = Field(ge=-1.0, le=1.0)
    metadata: NoteMetadata


class AnalysisState(str, Enum):
    """Lifecycle of one note's analysis."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchOutcome:
    """
    Per-item result of a batch analysis.

    Exactly one of ``metadata`` and ``error`` is set.
    """

    note_id: str
    metadata: NoteMetadata | None = None
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
