"""
Pytest Configuration and Fixtures

Shared fakes for the worker transport and the analysis providers, so the
orchestration logic runs without a worker process or network access.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be before any notelens imports.
#
# 1. Load .env first so local overrides are visible.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so Settings validation stays deterministic.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "LOG_LEVEL": "DEBUG",
    "PROVIDER_ORDER": "local,remote",
    "WORKER_TIMEOUT_SECONDS": "5",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import asyncio  # noqa: E402
from collections.abc import Callable  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from notelens.errors import ProviderError  # noqa: E402
from notelens.models.schemas import AnalysisResult, Note  # noqa: E402
from notelens.repositories.notes import InMemoryNoteStore  # noqa: E402
from notelens.services.worker_channel import WorkerChannel  # noqa: E402

Responder = Callable[[dict[str, Any]], dict[str, Any] | None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_note(content: str = "Some content.", title: str = "A note", **kwargs: Any) -> Note:
    """Create a Note with sensible defaults."""
    return Note(title=title, content=content, **kwargs)


def echo_responder(message: dict[str, Any]) -> dict[str, Any]:
    """Answer every request with its own task name."""
    return {"id": message["id"], "result": message["task"]}


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class FakeTransport:
    """
    In-memory WorkerTransport.

    Outbound messages are recorded in ``sent``. A ``responder`` turns each
    one into an immediate reply; without it, tests push replies by hand.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        ready: bool = True,
        exit_on_start: bool = False,
        fail_writes: bool = False,
    ) -> None:
        self.responder = responder
        self.ready = ready
        self.exit_on_start = exit_on_start
        self.fail_writes = fail_writes
        self.inbox: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True
        if self.exit_on_start:
            self.inbox.put_nowait(None)
        elif self.ready:
            self.inbox.put_nowait({"ready": True})

    async def write(self, message: dict[str, Any]) -> None:
        if self.fail_writes or self.closed:
            raise BrokenPipeError("fake pipe closed")
        self.sent.append(message)
        if self.responder is not None:
            reply = self.responder(message)
            if reply is not None:
                self.inbox.put_nowait(reply)

    async def read(self) -> dict[str, Any] | None:
        return await self.inbox.get()

    async def close(self) -> None:
        self.closed = True

    def reply(self, message: dict[str, Any]) -> None:
        self.inbox.put_nowait(message)

    def crash(self) -> None:
        """Simulate the worker process exiting."""
        self.inbox.put_nowait(None)


class FakeProvider:
    """
    Scripted AnalysisProvider.

    Returns ``result`` or raises ``error`` after ``delay`` seconds and
    records every note it was asked about.
    """

    def __init__(
        self,
        name: str,
        result: AnalysisResult | None = None,
        error: ProviderError | None = None,
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
        fail_for: set[str] | None = None,
    ) -> None:
        self.name = name
        self.result = result or AnalysisResult(
            summary=f"summary from {name}", sentiment="neutral", keywords=[name]
        )
        self.error = error
        self.delay = delay
        self.delays = delays or {}
        self.fail_for = fail_for or set()
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def analyze_note(self, note: Note) -> AnalysisResult:
        self.calls.append(note.id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(note.id, self.delay))
            if self.error is not None:
                raise self.error
            if note.id in self.fail_for:
                raise ProviderError(f"scripted failure for {note.id}", provider=self.name)
            return self.result.model_copy(update={"summary": f"{self.result.summary}: {note.id}"})
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryNoteStore:
    """Empty in-memory note store."""
    return InMemoryNoteStore()


@pytest.fixture
def transports() -> list[FakeTransport]:
    """Every transport created by ``make_channel`` channels, in creation order."""
    return []


@pytest.fixture
def make_channel(transports: list[FakeTransport]):
    """
    Factory for WorkerChannels over FakeTransports.

    Each (re)start of the channel creates a new transport built with the
    given options and appends it to ``transports``.
    """

    def _make(timeout: float = 1.0, **transport_options: Any) -> WorkerChannel:
        def factory() -> FakeTransport:
            transport = FakeTransport(**transport_options)
            transports.append(transport)
            return transport

        return WorkerChannel(transport_factory=factory, timeout=timeout)

    return _make
