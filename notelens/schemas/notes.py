"""
Note API Schemas

Pydantic models for the NoteLens endpoint request/response cycle.
Domain models (Note, NoteMetadata, SimilarNote) are returned as is.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from notelens.models.schemas import BatchOutcome, NoteMetadata


class NoteCreate(BaseModel):
    """Request body for POST /notes. Re-posting an existing id replaces the note."""

    id: str | None = Field(
        default=None,
        min_length=1,
        description="Client-chosen id (generated when omitted)",
    )
    title: str = Field(
        default="New Note",
        max_length=200,
        description="Note title",
    )
    content: str = Field(default="", description="Note content")


class BatchAnalyzeRequest(BaseModel):
    """Request body for batch analysis."""

    note_ids: list[str] = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Notes to analyze; results keep this order",
    )


class BatchItemResponse(BaseModel):
    """Outcome for one note of a batch."""

    note_id: str
    status: Literal["succeeded", "failed"]
    metadata: NoteMetadata | None = None
    error: str | None = Field(default=None, description="Failure reason")

    @classmethod
    def from_outcome(cls, outcome: BatchOutcome) -> BatchItemResponse:
        if outcome.ok:
            return cls(note_id=outcome.note_id, status="succeeded", metadata=outcome.metadata)
        return cls(note_id=outcome.note_id, status="failed", error=str(outcome.error))


class EmbeddingRequest(BaseModel):
    """Request body for ad-hoc embedding generation."""

    text: str = Field(..., description="Text to embed (may be empty)")


class EmbeddingResponse(BaseModel):
    """Embedding vector and its dimension."""

    embedding: list[float]
    dimension: int
