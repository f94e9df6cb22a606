"""
Notes API Router

HTTP endpoints for notes, their analysis and related-note lookup.

Endpoints:
    POST   /                  Save a note; analysis runs in the background.
    GET    /                  List notes, newest first.
    GET    /{id}              One note.
    DELETE /{id}              Delete a note and its metadata.
    POST   /{id}/analyze      Analyze now and return the metadata.
    POST   /analyze-batch     Analyze many notes, per-item outcomes.
    GET    /{id}/metadata     Stored metadata.
    GET    /{id}/similar      Related notes by embedding similarity.
    POST   /embeddings        Embedding for arbitrary text.
"""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
)

from notelens.core.config import settings
from notelens.errors import NoteNotFound, ProviderError
from notelens.models.schemas import Note, NoteMetadata, SimilarNote
from notelens.repositories.notes import NoteStore
from notelens.schemas.notes import (
    BatchAnalyzeRequest,
    BatchItemResponse,
    EmbeddingRequest,
    EmbeddingResponse,
    NoteCreate,
)
from notelens.services.analyzer import AnalysisOrchestrator
from notelens.services.similarity import find_related

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_store(request: Request) -> NoteStore:
    """FastAPI dependency: the store wired in the lifespan handler."""
    return request.app.state.store


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    """FastAPI dependency: the orchestrator wired in the lifespan handler."""
    return request.app.state.orchestrator


async def _get_note_or_404(store: NoteStore, note_id: str) -> Note:
    note = await store.get_note(note_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


# ---------------------------------------------------------------------------
# Background task
# ---------------------------------------------------------------------------


async def _run_analysis(orchestrator: AnalysisOrchestrator, note: Note) -> None:
    """
    Background analysis after a save.

    The note is already stored, so a failed analysis loses nothing; the
    client can retry through POST /{id}/analyze.
    """
    try:
        await orchestrator.analyze(note)
    except ProviderError as e:
        logger.warning("Background analysis failed for note %s: %s", note.id, e)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", response_model=Note, status_code=status.HTTP_201_CREATED)
async def save_note(
    note_in: NoteCreate,
    background_tasks: BackgroundTasks,
    store: NoteStore = Depends(get_store),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Create or replace a note.

    Analysis is offloaded to a background task to keep the response fast.
    The note is saved before analysis starts, so it is never lost because
    a provider is down.
    """
    data = note_in.model_dump(exclude_none=True)
    existing = await store.get_note(data["id"]) if "id" in data else None
    if existing is not None:
        data["created_at"] = existing.created_at

    note = await store.save_note(Note(**data))
    background_tasks.add_task(_run_analysis, orchestrator, note)
    return note


@router.get("/", response_model=list[Note])
async def list_notes(store: NoteStore = Depends(get_store)):
    """List all notes, newest first."""
    return await store.get_all_notes()


@router.post("/analyze-batch", response_model=list[BatchItemResponse])
async def analyze_batch(
    batch_req: BatchAnalyzeRequest,
    store: NoteStore = Depends(get_store),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Analyze several notes concurrently.

    Returns one item per requested id, in request order. Failed items do
    not fail the request.

    Raises:
        HTTPException 404: If any id is unknown.
    """
    notes: list[Note] = []
    missing: list[str] = []
    for note_id in batch_req.note_ids:
        note = await store.get_note(note_id)
        if note is None:
            missing.append(note_id)
        else:
            notes.append(note)

    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notes not found: {', '.join(missing)}",
        )

    outcomes = await orchestrator.analyze_batch(notes)
    return [BatchItemResponse.from_outcome(outcome) for outcome in outcomes]


@router.post("/embeddings", response_model=EmbeddingResponse)
async def create_embedding(
    embed_req: EmbeddingRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Embedding for arbitrary text. Works without any provider."""
    vector = await orchestrator.embedder.embed(embed_req.text)
    return EmbeddingResponse(embedding=vector, dimension=len(vector))


@router.get("/{note_id}", response_model=Note)
async def read_note(note_id: str, store: NoteStore = Depends(get_store)):
    """Retrieve a single note by ID."""
    return await _get_note_or_404(store, note_id)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    store: NoteStore = Depends(get_store),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> None:
    """Delete a note together with its metadata."""
    try:
        await store.delete_note(note_id)
    except NoteNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    orchestrator.forget(note_id)


@router.post("/{note_id}/analyze", response_model=NoteMetadata)
async def analyze_note(
    note_id: str,
    store: NoteStore = Depends(get_store),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Analyze a stored note now.

    Raises:
        HTTPException 404: Unknown note.
        HTTPException 502: Both analysis providers failed.
    """
    note = await _get_note_or_404(store, note_id)
    try:
        return await orchestrator.analyze(note)
    except ProviderError as e:
        # 502 Bad Gateway: upstream analysis providers failed
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Analysis failed: {e}"
        ) from e


@router.get("/{note_id}/metadata", response_model=NoteMetadata)
async def read_metadata(note_id: str, store: NoteStore = Depends(get_store)):
    """Stored analysis metadata for a note."""
    metadata = await store.get_metadata(note_id)
    if metadata is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Note has not been analyzed"
        )
    return metadata


@router.get("/{note_id}/similar", response_model=list[SimilarNote])
async def similar_notes(
    note_id: str,
    threshold: float = Query(default=settings.SIMILARITY_THRESHOLD, ge=-1.0, le=1.0),
    limit: int = Query(default=settings.SIMILARITY_LIMIT, ge=1, le=50),
    store: NoteStore = Depends(get_store),
):
    """
    Notes whose embeddings are most similar to this note's.

    Empty until the note has been analyzed.
    """
    await _get_note_or_404(store, note_id)
    return await find_related(store, note_id, threshold=threshold, limit=limit)
