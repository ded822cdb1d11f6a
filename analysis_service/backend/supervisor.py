"""Lifecycle supervisor for the external analysis backend process.

The backend is a separate long-running process started from a configured
command. Its stdout/stderr are only logged. Every state transition happens
under one asyncio lock, so concurrent ``ensure_connected`` calls, the process
watcher and the reconnect timer never interleave.

States::

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> RECONNECTING -> (CONNECTED | DISCONNECTED)

After ``max_reconnect_attempts`` consecutive failures the supervisor settles
in DISCONNECTED and schedules nothing further; the next ``ensure_connected``
call makes a fresh attempt.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Coroutine, Mapping, Sequence
from typing import Any

from analysis_service.backend.types import ConnectionState, SupervisorStatus
from analysis_service.logging_config import BACKEND_PROCESS_LOGGER

logger = logging.getLogger(__name__)
process_logger = logging.getLogger(BACKEND_PROCESS_LOGGER)

ProcessFactory = Callable[..., Awaitable[asyncio.subprocess.Process]]

_READ_CHUNK_BYTES = 64 * 1024
_MAX_LOGGED_LINE_CHARS = 4096


def _log_output(raw: bytes, level: int) -> None:
    line = raw.decode("utf-8", errors="replace").rstrip()
    if not line:
        return
    if len(line) > _MAX_LOGGED_LINE_CHARS:
        line = f"{line[:_MAX_LOGGED_LINE_CHARS]}... [{len(line)} chars]"
    process_logger.log(level, "Analysis backend: %s", line)


class BackendSupervisor:
    def __init__(
        self,
        command: Sequence[str],
        *,
        settle_seconds: float,
        reconnect_delay_seconds: float,
        max_reconnect_attempts: int,
        shutdown_grace_seconds: float = 5.0,
        env: Mapping[str, str] | None = None,
        process_factory: ProcessFactory | None = None,
    ) -> None:
        if not command:
            raise ValueError("Backend command must not be empty")
        if max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")
        self._command = list(command)
        self._settle = max(0.0, settle_seconds)
        self._delay = max(0.0, reconnect_delay_seconds)
        self._max_attempts = max_reconnect_attempts
        self._grace = shutdown_grace_seconds
        self._env = dict(env) if env is not None else dict(os.environ)
        self._factory: ProcessFactory = process_factory or asyncio.create_subprocess_exec

        self._lock = asyncio.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._process: asyncio.subprocess.Process | None = None
        self._reconnect_attempts = 0
        self._reconnect_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    # -- Read-only ------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def status(self) -> SupervisorStatus:
        alive = self._process_alive()
        return SupervisorStatus(
            state=self._state,
            connected=self._state is ConnectionState.CONNECTED and alive,
            reconnect_attempts=self._reconnect_attempts,
            process_alive=alive,
        )

    # -- Public lifecycle -----------------------------------------------------

    async def ensure_connected(self) -> bool:
        """Return True once the backend process is up.

        Bounded by the settle interval; a pending reconnect timer is replaced
        by an immediate attempt.
        """
        async with self._lock:
            if self._state is ConnectionState.CONNECTED and self._process_alive():
                return True
            self._cancel_reconnect()
            return await self._connect_locked()

    async def restart(self) -> bool:
        """Manual reinitialize: stop, clear the attempt counter, connect."""
        async with self._lock:
            await self._shutdown_locked()
            self._reconnect_attempts = 0
            return await self._connect_locked()

    async def shutdown(self) -> None:
        """Best-effort terminate. Idempotent; always ends DISCONNECTED."""
        async with self._lock:
            await self._shutdown_locked()

    # -- Internals (caller holds self._lock) ----------------------------------

    def _process_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def _connect_locked(self) -> bool:
        # A dead process left behind is forgotten; its watcher sees the swap.
        self._process = None
        self._state = ConnectionState.CONNECTING
        logger.info("Starting analysis backend: %s", " ".join(self._command))

        try:
            proc = await self._factory(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to start analysis backend: %s", e)
            self._on_failure_locked()
            return False

        self._process = proc
        self._spawn(self._pump(proc, proc.stdout, logging.INFO))
        self._spawn(self._pump(proc, proc.stderr, logging.WARNING))
        self._spawn(self._watch(proc))

        try:
            await asyncio.sleep(self._settle)
        except asyncio.CancelledError:
            logger.warning("Backend startup cancelled; stopping half-started process")
            await self._shutdown_locked()
            raise

        if proc.returncode is not None:
            logger.error("Analysis backend exited during startup with code %s", proc.returncode)
            self._process = None
            self._on_failure_locked()
            return False

        self._state = ConnectionState.CONNECTED
        self._reconnect_attempts = 0
        logger.info("Analysis backend started (pid=%s)", proc.pid)
        return True

    def _on_failure_locked(self) -> None:
        if self._reconnect_attempts < self._max_attempts:
            self._reconnect_attempts += 1
            self._state = ConnectionState.RECONNECTING
            logger.warning(
                "Attempting to reconnect to analysis backend (%d/%d) in %.1fs",
                self._reconnect_attempts,
                self._max_attempts,
                self._delay,
            )
            self._cancel_reconnect()
            self._reconnect_task = asyncio.create_task(self._reconnect_later())
        else:
            self._state = ConnectionState.DISCONNECTED
            logger.error(
                "Max reconnection attempts (%d) reached; analysis backend will remain disconnected",
                self._max_attempts,
            )

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _shutdown_locked(self) -> None:
        self._cancel_reconnect()
        proc = self._process
        self._process = None
        self._state = ConnectionState.DISCONNECTED
        if proc is None or proc.returncode is not None:
            return

        try:
            proc.terminate()
        except ProcessLookupError:
            logger.debug("Analysis backend already gone before terminate")
            return

        try:
            await asyncio.wait_for(proc.wait(), timeout=self._grace)
        except asyncio.TimeoutError:
            logger.warning("Analysis backend ignored SIGTERM for %.1fs; killing", self._grace)
            proc.kill()
            await proc.wait()
        logger.info("Analysis backend process terminated")

    # -- Background tasks -----------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _reconnect_later(self) -> None:
        await asyncio.sleep(self._delay)
        async with self._lock:
            if self._reconnect_task is not asyncio.current_task():
                return
            self._reconnect_task = None
            if self._state is not ConnectionState.RECONNECTING:
                return
            await self._connect_locked()

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        code = await proc.wait()
        async with self._lock:
            if self._process is not proc:
                return
            self._process = None
            if code == 0:
                logger.info("Analysis backend exited cleanly")
                self._state = ConnectionState.DISCONNECTED
                return
            logger.error("Analysis backend exited unexpectedly with code %s", code)
            self._on_failure_locked()

    async def _pump(
        self,
        proc: asyncio.subprocess.Process,
        stream: asyncio.StreamReader | None,
        level: int,
    ) -> None:
        if stream is None:
            return
        # Chunked reads: readline() raises on lines over the reader limit.
        pending = b""
        try:
            while True:
                chunk = await stream.read(_READ_CHUNK_BYTES)
                if not chunk:
                    break
                pending += chunk
                *lines, pending = pending.split(b"\n")
                if len(pending) > _READ_CHUNK_BYTES:
                    lines.append(pending)
                    pending = b""
                for raw in lines:
                    _log_output(raw, level)
            _log_output(pending, level)
        except OSError as e:
            logger.error("Analysis backend output stream failed: %s", e)
            await self._on_stream_error(proc)

    async def _on_stream_error(self, proc: asyncio.subprocess.Process) -> None:
        # Stopping the process routes the failure through _watch.
        async with self._lock:
            if self._process is not proc or proc.returncode is not None:
                return
            try:
                proc.terminate()
            except ProcessLookupError:
                logger.debug("Analysis backend already gone after stream error")
