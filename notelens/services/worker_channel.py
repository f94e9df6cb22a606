"""
Worker Channel

Request/response link to the local analysis worker, an isolated process
reachable only through asynchronous messages (JSON lines over its
stdin/stdout, see ``notelens.worker``).

Design:
    - Correlation: each request gets a strictly increasing integer id and a
      pending entry holding the future its caller awaits.
    - Per-request deadline: a timer settles the entry with
      ProviderTimeout; a reply arriving afterwards finds no entry and is
      dropped.
    - Channel failure (process exit, EOF, undecodable output, broken pipe)
      rejects every pending entry with ChannelError at once. The transport
      is dropped and the next ``send`` starts a fresh one.
    - Every settlement goes through ``_settle``, which pops the entry
      before touching the future. Of a reply and a timeout racing for the
      same id, exactly one finds the entry; the other is a no-op.

All state is owned by the event loop thread, so the registry needs no
lock beyond the one serializing transport start-up.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import os
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Protocol

from notelens.errors import ChannelError, ProviderTimeout, ProviderUnavailable
from notelens.services.resilience import cancel_all
from notelens.worker import TASKS

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Final[float] = 30.0
CLOSE_GRACE_SECONDS: Final[float] = 5.0
STREAM_LIMIT: Final[int] = 4 * 1024 * 1024  # one reply per line; long notes make long lines


class WorkerTransport(Protocol):
    """Message pipe to one worker instance."""

    async def start(self) -> None:
        """Launch the worker. Raises OSError if it cannot be started."""
        ...

    async def write(self, message: dict[str, Any]) -> None:
        """Send one message. Raises OSError if the pipe is broken."""
        ...

    async def read(self) -> dict[str, Any] | None:
        """Next inbound message, or None once the worker has gone away."""
        ...

    async def close(self) -> None:
        """Stop the worker. Safe to call more than once, or before start."""
        ...


class SubprocessTransport:
    """
    Runs ``python -m notelens.worker`` as a child process.

    The child inherits stderr so its log lines end up next to ours.
    """

    def __init__(self, command: Sequence[str] | None = None) -> None:
        self._command = list(command) if command else [sys.executable, "-m", "notelens.worker"]
        self._process: asyncio.subprocess.Process | None = None

    @staticmethod
    def _child_env() -> dict[str, str]:
        # Make the package importable in the child even without an install
        package_root = str(Path(__file__).resolve().parents[2])
        env = dict(os.environ)
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = package_root + (os.pathsep + existing if existing else "")
        env["PYTHONUNBUFFERED"] = "1"
        return env

    async def start(self) -> None:
        self._process = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env=self._child_env(),
            limit=STREAM_LIMIT,
        )
        logger.info("Started local worker (pid=%d)", self._process.pid)

    async def write(self, message: dict[str, Any]) -> None:
        if self._process is None or self._process.stdin is None:
            raise BrokenPipeError("worker not started")
        self._process.stdin.write(json.dumps(message).encode() + b"\n")
        await self._process.stdin.drain()

    async def read(self) -> dict[str, Any] | None:
        if self._process is None or self._process.stdout is None:
            return None
        line = await self._process.stdout.readline()
        if not line:
            return None
        return json.loads(line)

    async def close(self) -> None:
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return

        if process.stdin is not None:
            process.stdin.close()
        try:
            process.terminate()
        except ProcessLookupError:
            # Exited between the returncode check and the signal
            await process.wait()
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=CLOSE_GRACE_SECONDS)
        except TimeoutError:
            logger.warning("Local worker (pid=%d) ignored SIGTERM, killing", process.pid)
            process.kill()
            await process.wait()
        logger.info("Stopped local worker (pid=%d)", process.pid)


@dataclass
class PendingRequest:
    """One outstanding request awaiting its correlated reply."""

    id: int
    task: str
    future: asyncio.Future[Any]
    deadline: float
    timer: asyncio.TimerHandle | None = None


class WorkerChannel:
    """
    Timeout-bounded request/response exchange with the local worker.

    The transport is created lazily on the first ``send`` and reused for
    the lifetime of the channel until it fails or ``terminate`` is called.

    Usage::

        channel = WorkerChannel(timeout=10.0)
        result = await channel.send("analyze", {"content": "...", "title": "..."})
        await channel.terminate()

    Args:
        transport_factory: Builds a fresh transport for each (re)start.
        timeout: Seconds before an unanswered request settles as
            ProviderTimeout. Also bounds the wait for the readiness signal.
        name: Provider name attached to raised errors.
    """

    def __init__(
        self,
        transport_factory: Callable[[], WorkerTransport] = SubprocessTransport,
        timeout: float = DEFAULT_TIMEOUT,
        name: str = "local",
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._transport_factory = transport_factory
        self._timeout = timeout
        self.name = name

        self._transport: WorkerTransport | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._pending: dict[int, PendingRequest] = {}
        self._ids = itertools.count(1)
        self._start_lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_running(self) -> bool:
        return self._transport is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(self, task: str, payload: dict[str, Any] | None = None) -> Any:
        """
        Send one task to the worker and wait for its reply.

        Returns:
            The ``result`` field of the correlated reply.

        Raises:
            ValueError: If ``task`` is not a worker task.
            ProviderTimeout: No reply within the channel timeout.
            ChannelError: The worker failed while the request was pending.
            ProviderUnavailable: The worker reported an error for the task.
        """
        if task not in TASKS:
            raise ValueError(f"Unknown worker task: {task!r}")

        transport = await self._ensure_transport()
        loop = asyncio.get_running_loop()

        request_id = next(self._ids)
        entry = PendingRequest(
            id=request_id,
            task=task,
            future=loop.create_future(),
            deadline=loop.time() + self._timeout,
        )
        entry.timer = loop.call_later(self._timeout, self._expire, request_id)
        self._pending[request_id] = entry

        try:
            try:
                await transport.write({**(payload or {}), "id": request_id, "task": task})
            except OSError as e:
                self._fail_channel(transport, f"write failed: {e}")
            return await entry.future
        finally:
            # No-op once settled; drops the entry if our caller was cancelled
            self._discard(request_id)

    async def terminate(self) -> None:
        """
        Stop the worker and forget all pending requests.

        Pending callers see their request cancelled rather than failed.
        """
        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None

        pending = list(self._pending.values())
        self._pending.clear()
        for entry in pending:
            if entry.timer is not None:
                entry.timer.cancel()
            entry.future.cancel()

        if reader is not None:
            await cancel_all([reader])
        if transport is not None:
            await transport.close()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if pending:
            logger.info("Worker channel terminated with %d pending request(s)", len(pending))

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------

    async def _ensure_transport(self) -> WorkerTransport:
        async with self._start_lock:
            if self._transport is not None:
                return self._transport

            transport = self._transport_factory()
            try:
                await transport.start()
                await asyncio.wait_for(self._await_ready(transport), timeout=self._timeout)
            except TimeoutError as e:
                await transport.close()
                raise ProviderTimeout(
                    f"Worker not ready after {self._timeout:g}s", provider=self.name
                ) from e
            except ChannelError:
                await transport.close()
                raise
            except (OSError, ValueError) as e:
                await transport.close()
                raise ChannelError(f"Worker failed to start: {e}", provider=self.name) from e
            except BaseException:
                # Caller cancelled mid start-up; the half-started worker is not kept
                await transport.close()
                raise

            self._transport = transport
            self._reader_task = asyncio.create_task(self._read_loop(transport))
            logger.debug("Worker channel ready")
            return transport

    async def _await_ready(self, transport: WorkerTransport) -> None:
        while True:
            message = await transport.read()
            if message is None:
                raise ChannelError("Worker exited before signalling readiness", provider=self.name)
            if isinstance(message, dict) and message.get("ready"):
                return
            logger.debug("Ignoring pre-ready worker message: %r", message)

    async def _read_loop(self, transport: WorkerTransport) -> None:
        try:
            while (message := await transport.read()) is not None:
                self._dispatch(message)
            reason = "worker closed its output"
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError) as e:
            reason = f"unreadable worker output: {e}"
        self._fail_channel(transport, reason)

    def _fail_channel(self, transport: WorkerTransport, reason: str) -> None:
        """Reject every pending request and drop the failed transport."""
        if transport is not self._transport:
            return  # already replaced or terminated

        self._transport = None
        reader, self._reader_task = self._reader_task, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()

        pending_ids = list(self._pending)
        logger.error(
            "Worker channel error (%s); rejecting %d pending request(s)",
            reason,
            len(pending_ids),
        )
        for request_id in pending_ids:
            self._settle(
                request_id,
                error=ChannelError(f"Worker channel error: {reason}", provider=self.name),
            )

        closer = asyncio.ensure_future(transport.close())
        self._background.add(closer)
        closer.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Pending-request registry
    # ------------------------------------------------------------------

    def _dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object worker message: %r", message)
            return

        request_id = message.get("id")
        if not isinstance(request_id, int):
            if not message.get("ready"):
                logger.warning("Ignoring uncorrelated worker message: %r", message)
            return

        if message.get("error") is not None:
            settled = self._settle(
                request_id,
                error=ProviderUnavailable(
                    f"Worker task failed: {message['error']}", provider=self.name
                ),
            )
        else:
            settled = self._settle(request_id, result=message.get("result"))

        if not settled:
            logger.debug("Discarding reply for unknown or expired request %d", request_id)

    def _expire(self, request_id: int) -> None:
        entry = self._pending.get(request_id)
        task = entry.task if entry else "?"
        if self._settle(
            request_id,
            error=ProviderTimeout(
                f"Worker task {task!r} timed out after {self._timeout:g}s", provider=self.name
            ),
        ):
            logger.warning("Worker request %d (%s) timed out", request_id, task)

    def _settle(
        self,
        request_id: int,
        result: Any = None,
        error: BaseException | None = None,
    ) -> bool:
        """Settle and remove one entry. Returns False if it was already gone."""
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        if entry.future.done():
            return False
        if error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(result)
        return True

    def _discard(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
