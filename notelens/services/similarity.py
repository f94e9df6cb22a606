"""
Similarity Service

Cosine similarity over stored embeddings and ranking of related notes.

Ranking is done in memory over the current note set: the embedding
dimension is small and fixed, and the store is a plain key-value
collaborator without vector indexes.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Final

from notelens.models.schemas import Note, NoteMetadata, SimilarNote
from notelens.repositories.notes import NoteStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD: Final[float] = 0.5
DEFAULT_LIMIT: Final[int] = 5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Vectors of different length are treated as unrelated (0.0) rather than
    raising, and so is any pair where either vector has zero norm.
    """
    if len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    norm = math.sqrt(norm_a) * math.sqrt(norm_b)
    if norm == 0:
        return 0.0
    # Clamp float drift so the result stays a valid SimilarNote score
    return max(-1.0, min(1.0, dot / norm))


def rank_similar(
    target: NoteMetadata,
    candidates: Iterable[tuple[Note, NoteMetadata | None]],
    threshold: float = DEFAULT_THRESHOLD,
    limit: int = DEFAULT_LIMIT,
) -> list[SimilarNote]:
    """
    Rank candidate notes by similarity to ``target``.

    Args:
        target: Metadata of the note to compare against.
        candidates: (note, metadata) pairs. Pairs without an embedding and
            the target note itself are skipped.
        threshold: Keep only similarities strictly greater than this.
        limit: Maximum number of results.

    Returns:
        SimilarNotes sorted by descending similarity. Equal scores keep
        input order.
    """
    if not target.embedding or limit <= 0:
        return []

    hits: list[SimilarNote] = []
    for note, metadata in candidates:
        if note.id == target.note_id:
            continue
        if metadata is None or not metadata.embedding:
            continue
        if len(metadata.embedding) != len(target.embedding):
            logger.warning(
                "Embedding length mismatch for note %s (%d != %d), treating as unrelated",
                note.id,
                len(metadata.embedding),
                len(target.embedding),
            )
            continue

        score = cosine_similarity(target.embedding, metadata.embedding)
        if score > threshold:
            hits.append(SimilarNote(note=note, similarity=score, metadata=metadata))

    hits.sort(key=lambda hit: hit.similarity, reverse=True)
    return hits[:limit]


def pair_with_metadata(
    notes: Iterable[Note],
    metadata: Iterable[NoteMetadata],
) -> list[tuple[Note, NoteMetadata | None]]:
    """Join notes with their metadata records by note id."""
    by_note: Mapping[str, NoteMetadata] = {m.note_id: m for m in metadata}
    return [(note, by_note.get(note.id)) for note in notes]


async def find_related(
    store: NoteStore,
    note_id: str,
    threshold: float = DEFAULT_THRESHOLD,
    limit: int = DEFAULT_LIMIT,
) -> list[SimilarNote]:
    """
    Related notes for a stored note.

    Returns an empty list when the note has not been analyzed yet.
    """
    target = await store.get_metadata(note_id)
    if target is None or not target.embedding:
        return []

    notes = await store.get_all_notes()
    metadata = await store.get_all_metadata()
    return rank_similar(
        target,
        pair_with_metadata(notes, metadata),
        threshold=threshold,
        limit=limit,
    )
