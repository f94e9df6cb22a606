"""
Base provider protocol.

Defines the capability every analysis provider implements. Using Protocol
for structural subtyping, so no explicit inheritance is required.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from notelens.errors import ProviderUnavailable
from notelens.models.schemas import AnalysisResult, Note


@runtime_checkable
class AnalysisProvider(Protocol):
    """
    Turns a note into summary, sentiment and keywords.

    Implementations must raise only ``ProviderError`` subclasses so the
    orchestrator can fall back to the other provider without knowing
    which transport failed.
    """

    name: str

    async def analyze_note(self, note: Note) -> AnalysisResult:
        """
        Analyze one note.

        Raises:
            ProviderError: On timeout, channel failure, missing credentials,
                network failure or an unusable reply.
        """
        ...


class UnavailableProvider:
    """Provider that always fails. Fills a slot whose backend is disabled."""

    def __init__(self, name: str = "unavailable", reason: str = "provider is disabled") -> None:
        self.name = name
        self._reason = reason

    async def analyze_note(self, note: Note) -> AnalysisResult:
        raise ProviderUnavailable(self._reason, provider=self.name)
