"""NoteLens: note analysis orchestration and similarity engine."""

__version__ = "0.1.0"
