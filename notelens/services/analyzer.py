"""
Analysis Orchestrator

Coordinates one note's analysis: primary provider, fallback to the
secondary provider, embedding generation, metadata assembly and the
hand-off to storage. Also fans a batch of notes out concurrently and
back in, preserving input order.

This is the single entry point for the API layer. It composes the
individual services (providers, EmbeddingGenerator, NoteStore) into
cohesive workflows.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Final

from notelens.core.config import Settings
from notelens.errors import AnalysisFailed, ProviderError
from notelens.models.schemas import (
    AnalysisResult,
    AnalysisState,
    BatchOutcome,
    Note,
    NoteMetadata,
)
from notelens.repositories.notes import NoteStore
from notelens.services.embedding import EmbeddingGenerator, embedding_generator
from notelens.services.providers.base import AnalysisProvider
from notelens.services.providers.factory import create_provider_pair
from notelens.services.resilience import cancel_all, run_parallel, with_timeout

logger = logging.getLogger(__name__)

DEFAULT_BATCH_CONCURRENCY: Final[int] = 8


class AnalysisOrchestrator:
    """
    Runs note analyses against a primary and a secondary provider.

    **Single note** (``analyze``):
        primary provider → (on ProviderError) secondary provider, with the
        embedding computed concurrently → NoteMetadata → NoteStore

    **Batch** (``analyze_batch``):
        one ``analyze`` per note, at most ``batch_concurrency`` at a time,
        one BatchOutcome per note in input order

    Fallback is strictly sequential and never retries: the secondary
    provider starts only after the primary failed, and is tried once.
    A failed analysis never writes metadata, so earlier results for the
    note stay intact. Neither does an analysis whose note was deleted or
    edited while it ran.

    Usage::

        orchestrator = AnalysisOrchestrator(local, remote, store=store)
        metadata = await orchestrator.analyze(note)
        outcomes = await orchestrator.analyze_batch(notes)
        await orchestrator.close()

    Args:
        primary: Provider tried first.
        secondary: Provider tried once if the primary fails.
        embedder: Embedding generator (shared module instance by default).
        store: Receives metadata of successful analyses. Optional.
        batch_concurrency: Maximum analyses in flight during a batch.
        analysis_timeout: Overall deadline per note in seconds, on top of
            the providers' own timeouts. None disables it.
    """

    def __init__(
        self,
        primary: AnalysisProvider,
        secondary: AnalysisProvider,
        embedder: EmbeddingGenerator | None = None,
        store: NoteStore | None = None,
        batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
        analysis_timeout: float | None = None,
    ) -> None:
        if batch_concurrency < 1:
            raise ValueError(f"batch_concurrency must be >= 1, got {batch_concurrency}")
        if analysis_timeout is not None and analysis_timeout <= 0:
            raise ValueError(f"analysis_timeout must be positive, got {analysis_timeout}")

        self._primary = primary
        self._secondary = secondary
        self._embedder = embedder or embedding_generator
        self._store = store
        self._batch_concurrency = batch_concurrency
        self._analysis_timeout = analysis_timeout
        self._states: dict[str, AnalysisState] = {}

    @property
    def primary(self) -> AnalysisProvider:
        return self._primary

    @property
    def secondary(self) -> AnalysisProvider:
        return self._secondary

    @property
    def embedder(self) -> EmbeddingGenerator:
        return self._embedder

    def state(self, note_id: str) -> AnalysisState:
        """Lifecycle state of the latest analysis of a note."""
        return self._states.get(note_id, AnalysisState.IDLE)

    # ------------------------------------------------------------------
    # Single note
    # ------------------------------------------------------------------

    async def analyze(self, note: Note) -> NoteMetadata:
        """
        Analyze one note and store the resulting metadata.

        Returns:
            The assembled NoteMetadata (saved if a store is set and the note
            is unchanged).

        Raises:
            AnalysisFailed: Both providers failed.
            ProviderTimeout: The overall analysis deadline expired.
        """
        self._states[note.id] = AnalysisState.ANALYZING
        try:
            if self._analysis_timeout is None:
                metadata = await self._run(note)
            else:
                metadata = await with_timeout(
                    self._run(note), self._analysis_timeout, provider="orchestrator"
                )
        except BaseException:
            await self._finish(note.id, AnalysisState.FAILED)
            raise

        await self._finish(note.id, AnalysisState.SUCCEEDED)
        return metadata

    def forget(self, note_id: str) -> None:
        """Drop the tracked state of a note, e.g. after it was deleted."""
        self._states.pop(note_id, None)

    async def _finish(self, note_id: str, state: AnalysisState) -> None:
        # Deleted notes keep no state entry
        if self._store is not None and await self._store.get_note(note_id) is None:
            self._states.pop(note_id, None)
        else:
            self._states[note_id] = state

    async def _run(self, note: Note) -> NoteMetadata:
        # The embedding depends only on the text, so it overlaps the provider calls
        embedding_task = asyncio.create_task(self._embedder.embed(note.content))
        try:
            result = await self._analyze_with_fallback(note)
        except BaseException:
            await cancel_all([embedding_task])
            raise
        embedding = await embedding_task

        metadata = NoteMetadata(
            note_id=note.id,
            summary=result.summary,
            sentiment=result.sentiment,
            keywords=result.keywords,
            embedding=embedding,
            last_analyzed=datetime.now(UTC),
        )

        if self._store is not None:
            await self._save_if_current(note, metadata)

        logger.info(
            "Analyzed note %s (sentiment=%s, keywords=%d)",
            note.id,
            metadata.sentiment,
            len(metadata.keywords),
        )
        return metadata

    async def _save_if_current(self, note: Note, metadata: NoteMetadata) -> None:
        """Save metadata unless the note was deleted or edited while analyzing."""
        current = await self._store.get_note(note.id)
        if current is None:
            logger.info("Note %s was deleted during analysis, metadata discarded", note.id)
            return
        if (current.title, current.content) != (note.title, note.content):
            logger.info("Note %s changed during analysis, metadata discarded", note.id)
            return
        await self._store.save_metadata(metadata)

    async def _analyze_with_fallback(self, note: Note) -> AnalysisResult:
        try:
            return await self._primary.analyze_note(note)
        except ProviderError as primary_error:
            logger.warning(
                "Provider %s failed for note %s (%s), falling back to %s",
                self._primary.name,
                note.id,
                primary_error,
                self._secondary.name,
            )
            try:
                result = await self._secondary.analyze_note(note)
            except ProviderError as secondary_error:
                logger.error(
                    "Both providers failed for note %s: %s; %s",
                    note.id,
                    primary_error,
                    secondary_error,
                )
                raise AnalysisFailed(note.id, primary_error, secondary_error) from secondary_error

            logger.info("Note %s analyzed by fallback provider %s", note.id, self._secondary.name)
            return result

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def analyze_batch(self, notes: Sequence[Note]) -> list[BatchOutcome]:
        """
        Analyze many notes concurrently.

        One note's failure does not affect the others.

        Returns:
            One BatchOutcome per input note, in input order.
        """
        if not notes:
            return []

        logger.info(
            "Analyzing batch of %d notes (concurrency=%d)",
            len(notes),
            self._batch_concurrency,
        )
        outcomes: list[BatchOutcome] = await run_parallel(
            [self._analyze_outcome(note) for note in notes],
            limit=self._batch_concurrency,
        )

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        if failed:
            logger.warning("Batch finished with %d/%d failed analyses", failed, len(outcomes))
        return outcomes

    async def _analyze_outcome(self, note: Note) -> BatchOutcome:
        try:
            return BatchOutcome(note_id=note.id, metadata=await self.analyze(note))
        except ProviderError as e:
            return BatchOutcome(note_id=note.id, error=e)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release provider resources (worker process, HTTP clients)."""
        for provider in (self._primary, self._secondary):
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()


def build_orchestrator(config: Settings, store: NoteStore | None = None) -> AnalysisOrchestrator:
    """Wire an orchestrator from settings: providers in configured order."""
    primary, secondary = create_provider_pair(config)
    return AnalysisOrchestrator(
        primary,
        secondary,
        store=store,
        batch_concurrency=config.BATCH_CONCURRENCY,
        analysis_timeout=config.ANALYSIS_TIMEOUT_SECONDS,
    )
