"""Channel to the out-of-process analysis worker.

The worker is a child process that reads one JSON request per line on stdin
and writes one JSON reply per line on stdout. Every request carries an
integer ``id`` which the worker echoes back, so replies are matched to the
request they answer rather than to arrival order.

Protocol:
    Request:  {"id": 7, "topic": "load-project", "tsconfig": "...", "showLibs": false}
    Reply:    {"id": 7, "err": null}

The worker's stderr is inherited so its own logging ends up on the console.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .errors import WorkerError
from .types import WorkerRequest, WorkerResponse

logger = logging.getLogger(__name__)

# Replies such as symbol tables can be large; raise the per-line read limit.
_STREAM_LIMIT = 64 * 1024 * 1024

# Grace period for the worker to exit after terminate() before it is killed.
_TERMINATE_TIMEOUT = 5.0


def build_worker_command(path: Path, args: Sequence[str] = ()) -> list[str]:
    """Build the argv used to launch a worker.

    Python scripts are run with the current interpreter; anything else is
    executed directly.
    """
    if path.suffix == ".py":
        return [sys.executable, str(path), *args]
    return [str(path), *args]


class WorkerProcess:
    """Request/response channel to a worker child process.

    Use :meth:`create` to spawn the worker. All methods must be called from
    the event loop that created the channel.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._pending: Dict[int, asyncio.Future[WorkerResponse]] = {}
        self._next_id = 1
        self._closed = False
        self._broken = False
        self._write_lock = asyncio.Lock()
        self._reader = asyncio.get_running_loop().create_task(
            self._read_replies(), name="worker-reader"
        )

    @classmethod
    async def create(
        cls,
        path: str | Path,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
    ) -> 'WorkerProcess':
        """Spawn the worker at ``path`` and return a channel attached to it.

        Args:
            path: Worker executable or Python script.
            args: Extra command line arguments for the worker.
            cwd: Working directory for the worker process.

        Raises:
            WorkerError: If the process cannot be started.
        """
        argv = build_worker_command(Path(path), args)
        logger.info("Starting worker: %s", " ".join(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                cwd=cwd,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise WorkerError(f"Could not start worker {path}: {exc}") from exc
        logger.info("Worker started (pid %s)", process.pid)
        return cls(process)

    @property
    def connected(self) -> bool:
        """Whether the worker process is alive and its reply stream open."""
        return (
            not self._closed
            and not self._broken
            and self._process.returncode is None
            and not self._reader.done()
        )

    @property
    def pending_count(self) -> int:
        """Requests sent but not answered yet."""
        return len(self._pending)

    async def send(self, request: WorkerRequest) -> WorkerResponse:
        """Send one request and wait for its reply.

        Raises:
            WorkerError: If the worker is gone, the write fails, or the
                worker exits before replying.
        """
        if not self.connected:
            raise WorkerError("Worker process is not running")

        request_id = self._next_id
        self._next_id += 1
        future: asyncio.Future[WorkerResponse] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        payload = request.to_dict()
        payload["id"] = request_id
        line = json.dumps(payload) + "\n"
        stdin = self._process.stdin
        assert stdin is not None

        try:
            async with self._write_lock:
                stdin.write(line.encode("utf-8"))
                await stdin.drain()
            logger.debug("Sent request %d (%s)", request_id, request.topic.value)
            return await future
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise WorkerError(f"Could not write to worker: {exc}") from exc
        finally:
            self._pending.pop(request_id, None)

    async def close(self) -> None:
        """Stop the worker and fail any request still waiting for a reply."""
        if self._closed:
            return
        self._closed = True

        if self._process.returncode is None:
            if self._process.stdin is not None:
                self._process.stdin.close()
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=_TERMINATE_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Worker did not exit after terminate; killing it")
                self._process.kill()
                await self._process.wait()

        await self._reader
        logger.info("Worker stopped (exit code %s)", self._process.returncode)

    async def _read_replies(self) -> None:
        """Resolve pending requests from the worker's stdout until EOF."""
        stdout = self._process.stdout
        assert stdout is not None
        try:
            while True:
                # readline() raises ValueError for a line over the stream limit
                line = await stdout.readline()
                if not line:
                    break
                self._handle_line(line)
        except Exception as exc:
            logger.exception("Worker reply stream broken; stopping the worker")
            self._abandon(WorkerError(f"Worker reply stream broken: {exc}"))
        finally:
            returncode = await self._process.wait()
            if returncode != 0 and not self._closed and not self._broken:
                logger.error("Worker exited unexpectedly with code %s", returncode)
            self._fail_pending(WorkerError(f"Worker exited with code {returncode}"))

    def _handle_line(self, line: bytes) -> None:
        try:
            message: Any = json.loads(line)
        except ValueError:
            logger.warning("Ignoring malformed worker output: %r", line[:200])
            return
        if not isinstance(message, dict) or "id" not in message:
            logger.warning("Ignoring worker output without a request id: %r", line[:200])
            return

        request_id = message.pop("id")
        if not isinstance(request_id, int) or isinstance(request_id, bool):
            logger.warning("Ignoring worker output with invalid request id %r", request_id)
            return
        future = self._pending.get(request_id)
        if future is None or future.done():
            logger.warning("Dropping reply for unknown request id %r", request_id)
            return
        future.set_result(WorkerResponse.from_dict(message))

    def _abandon(self, error: WorkerError) -> None:
        """Give up on a worker whose reply stream can no longer be read.

        Pending requests fail right away and the channel reports itself
        disconnected; the process is then asked to terminate.
        """
        self._broken = True
        self._fail_pending(error)
        if self._process.returncode is None:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def _fail_pending(self, error: WorkerError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
