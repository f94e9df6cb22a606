"""
NoteLens Exceptions

Error taxonomy for analysis providers, the worker channel and the
embedding generator. Providers raise only ``ProviderError`` subclasses;
transport-level exceptions (httpx, openai, OS pipes) are converted at the
provider boundary and never reach the orchestrator raw.
"""

from __future__ import annotations


class NoteLensError(Exception):
    """Base exception for NoteLens errors."""


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderError(NoteLensError):
    """An analysis provider could not produce a result."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider

    def __str__(self) -> str:
        return f"[{self.provider}] {self.args[0]}"


class ProviderUnavailable(ProviderError):
    """Missing credential, network failure or non-success response."""


class ChannelError(ProviderUnavailable):
    """The local worker process itself failed, not a single task."""


class ProviderTimeout(ProviderError):
    """No response arrived before the deadline."""


class MalformedResponse(ProviderError):
    """A provider reply could not be read as an analysis result."""


class AnalysisFailed(ProviderError):
    """Both the primary and the secondary provider failed for one note."""

    def __init__(
        self,
        note_id: str,
        primary_error: ProviderError,
        secondary_error: ProviderError,
    ):
        super().__init__(
            f"Analysis of note {note_id} failed: "
            f"primary: {primary_error}; secondary: {secondary_error}",
            provider=f"{primary_error.provider}+{secondary_error.provider}",
        )
        self.note_id = note_id
        self.primary_error = primary_error
        self.secondary_error = secondary_error

    def __str__(self) -> str:
        return str(self.args[0])


# =============================================================================
# EMBEDDING ERRORS
# =============================================================================


class EmbeddingError(NoteLensError):
    """Embedding generation failed."""


class EmbeddingInvariantViolation(EmbeddingError):
    """A produced vector does not have the system-wide dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Embedding has {actual} dimensions, expected {expected}")
        self.expected = expected
        self.actual = actual


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class NoteNotFound(NoteLensError):
    """The store has no note with the requested id."""

    def __init__(self, note_id: str):
        super().__init__(f"Note with id {note_id} not found")
        self.note_id = note_id
