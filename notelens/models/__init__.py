"""Models package: Pydantic schemas for the NoteLens analysis pipeline."""

from notelens.models.schemas import (
    MAX_KEYWORDS,
    AnalysisResult,
    AnalysisState,
    BatchOutcome,
    Note,
    NoteMetadata,
    Sentiment,
    SimilarNote,
)

__all__ = [
    "MAX_KEYWORDS",
    "AnalysisResult",
    "AnalysisState",
    "BatchOutcome",
    "Note",
    "NoteMetadata",
    "Sentiment",
    "SimilarNote",
]
