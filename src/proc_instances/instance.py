"""Lifecycle manager for one spawned child process.

This module provides:
- Line-by-line capture of stdout/stderr into bounded buffers
- A single terminal ProcessResult shared by wait, kill and the exited event
- Blocking and asyncio waits, both with kill-on-timeout
- Safe stdin writes that report a dead child as ProcessAlreadyExitedError

Key design points:
- One reader thread per stream, so each buffer has exactly one producer
- One exit-watcher thread joins process exit with both stream-end signals;
  it is the only place the result is assembled and ``exited`` is fired
- Async waiters are asyncio futures resolved with call_soon_threadsafe
- Repeated kill/wait calls after termination return the cached result
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import threading
from collections.abc import Callable
from typing import IO, Optional

import anyio

from .buffer import LineBuffer
from .errors import InstanceError, ProcessAlreadyExitedError
from .events import EventHandler
from .result import ProcessResult, exit_code_of

__all__ = ["ProcessInstance"]

logger = logging.getLogger(__name__)


def _strip_newline(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


class ProcessInstance:
    """Handle for a running child process and its captured output.

    Instances are created by ``ProcessArguments.start()``; subscribe to the
    notifications before starting by subscribing on the arguments object, or
    on the instance afterwards.

    Example:
        ```python
        arguments = ProcessArguments("python", ["-c", "print('hi')"])
        with arguments.start() as instance:
            result = instance.wait_for_exit()
        print(result.exit_code, result.output_data)
        ```

    Attributes:
        exited: Fired once with the terminal ProcessResult, before blocked
            waiters are released
        output_data_received: Fired for every accepted stdout line
        error_data_received: Fired for every accepted stderr line
    """

    def __init__(
        self,
        ignore_empty_lines: bool = False,
        data_buffer_capacity: int | None = None,
    ) -> None:
        self._output = LineBuffer(data_buffer_capacity, ignore_empty_lines)
        self._error = LineBuffer(data_buffer_capacity, ignore_empty_lines)

        self.exited: EventHandler[ProcessResult] = EventHandler("exited")
        self.output_data_received: EventHandler[str] = EventHandler("output_data_received")
        self.error_data_received: EventHandler[str] = EventHandler("error_data_received")

        self._process: Optional[subprocess.Popen[str]] = None
        self._stdout_closed = threading.Event()
        self._stderr_closed = threading.Event()
        self._finished = threading.Event()
        self._result: Optional[ProcessResult] = None
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[ProcessResult]]] = []
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._input_lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def output_data(self) -> tuple[str, ...]:
        """Snapshot of the captured stdout lines."""
        return self._output.snapshot()

    @property
    def error_data(self) -> tuple[str, ...]:
        """Snapshot of the captured stderr lines."""
        return self._error.snapshot()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def has_exited(self) -> bool:
        """Whether the OS has reported the process as exited."""
        if self._result is not None:
            return True
        return self._process is not None and self._process.poll() is not None

    @property
    def result(self) -> ProcessResult | None:
        """The terminal result, or None while the process is running."""
        return self._result

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def send_input(self, text: str) -> None:
        """Write text to the child's stdin and flush it.

        Raises:
            ProcessAlreadyExitedError: If the child has exited, including
                when it exits while the write is in progress
            InstanceError: If stdin was closed by close()
        """
        process = self._require_process()
        self._raise_if_exited(process)
        self._write_input(process, text)

    async def send_input_async(self, text: str) -> None:
        """Write text to stdin from a worker thread.

        Only the write is awaited, not the process exit.

        Raises:
            ProcessAlreadyExitedError: Same conditions as send_input
        """
        process = self._require_process()
        self._raise_if_exited(process)
        await anyio.to_thread.run_sync(self._write_input, process, text)

    def _write_input(self, process: subprocess.Popen[str], text: str) -> None:
        if process.stdin is None:
            raise ProcessAlreadyExitedError()
        try:
            with self._input_lock:
                if self._closed:
                    raise InstanceError("stdin has been closed")
                process.stdin.write(text)
                process.stdin.flush()
        except (OSError, ValueError) as e:
            # BrokenPipeError from a dead reader, ValueError from a closed pipe
            logger.debug(f"stdin write failed pid={process.pid}: {e}")
            raise ProcessAlreadyExitedError() from e

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def kill(self) -> ProcessResult:
        """Kill the process and wait for its terminal result.

        Calling kill on a process that has already exited does not signal
        it again; the cached result is returned.
        """
        self._require_process()
        self._send_kill()
        return self.wait_for_exit()

    def wait_for_exit(self, timeout: float | None = None) -> ProcessResult:
        """Block until the process has exited and both streams have closed.

        Args:
            timeout: Seconds to wait before killing the process. The result
                of the forced termination is returned in that case.

        Returns:
            The terminal result; repeated calls return the same object
        """
        process = self._require_process()
        if self._result is not None:
            return self._result
        if not self._finished.wait(timeout):
            logger.debug(f"Wait timed out after {timeout}s, killing pid={process.pid}")
            self._send_kill()
            self._finished.wait()
        return self._get_result()

    async def wait_for_exit_async(self, timeout: float | None = None) -> ProcessResult:
        """Suspend until the process has exited and both streams have closed.

        Cancelling the awaiting task kills the process before the
        cancellation propagates, so an abandoned wait never leaks the child.

        Args:
            timeout: Seconds to wait before killing the process. The result
                of the forced termination is returned in that case.

        Returns:
            The terminal result; repeated calls return the same object

        Raises:
            asyncio.CancelledError: If the awaiting task is cancelled
        """
        process = self._require_process()
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ProcessResult] = loop.create_future()

        with self._lock:
            if self._result is not None:
                return self._result
            self._waiters.append((loop, future))

        try:
            if timeout is None:
                return await asyncio.shield(future)
            try:
                return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
            except asyncio.TimeoutError:
                logger.debug(
                    f"Async wait timed out after {timeout}s, killing pid={process.pid}"
                )
                self._send_kill()
                return await asyncio.shield(future)
        except asyncio.CancelledError:
            logger.debug(f"Async wait cancelled, killing pid={process.pid}")
            self._send_kill()
            raise

    def _send_kill(self) -> None:
        """Send the kill signal if the process has not exited yet."""
        process = self._require_process()
        with self._lock:
            if self._result is not None or process.poll() is not None:
                return
            try:
                process.kill()
                logger.debug(f"Sent kill to subprocess pid={process.pid}")
            except ProcessLookupError:
                logger.debug(f"Subprocess already exited pid={process.pid}")

    # ------------------------------------------------------------------
    # Disposal
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the process handle by closing stdin.

        Safe to call more than once and after the process has exited. A
        still-running process is not killed.
        """
        with self._input_lock:
            if self._closed:
                return
            self._closed = True
            process = self._process
            if process is None:
                return
            if process.stdin is not None:
                try:
                    process.stdin.close()
                except (OSError, ValueError) as e:
                    logger.debug(f"Error closing stdin pid={process.pid}: {e}")

        if not self.has_exited:
            logger.debug(f"Closed instance while subprocess still running pid={process.pid}")

    def __enter__(self) -> ProcessInstance:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Wiring (called by the launcher)
    # ------------------------------------------------------------------

    def _attach(self, process: subprocess.Popen[str]) -> None:
        """Take ownership of a freshly spawned process and start reading."""
        if self._process is not None:
            raise InstanceError("Process instance is already attached to a process")
        self._process = process

        pid = process.pid
        self._threads = [
            threading.Thread(
                target=self._read_stream,
                args=(process.stdout, self._receive_output),
                name=f"proc-instances-stdout-{pid}",
                daemon=True,
            ),
            threading.Thread(
                target=self._read_stream,
                args=(process.stderr, self._receive_error),
                name=f"proc-instances-stderr-{pid}",
                daemon=True,
            ),
            threading.Thread(
                target=self._watch_exit,
                name=f"proc-instances-exit-{pid}",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

    def _read_stream(
        self,
        stream: IO[str] | None,
        receive: Callable[[str | None], None],
    ) -> None:
        """Deliver each line of a stream, then the end-of-stream signal."""
        try:
            if stream is not None:
                for line in stream:
                    receive(_strip_newline(line))
        except (OSError, ValueError) as e:
            logger.debug(f"Stream read stopped pid={self.pid}: {e}")
        finally:
            if stream is not None:
                try:
                    stream.close()
                except OSError as e:
                    logger.debug(f"Error closing stream pid={self.pid}: {e}")
            receive(None)

    def _receive_output(self, data: str | None) -> None:
        self._add_data(self._output, data, self.output_data_received, self._stdout_closed)

    def _receive_error(self, data: str | None) -> None:
        self._add_data(self._error, data, self.error_data_received, self._stderr_closed)

    @staticmethod
    def _add_data(
        buffer: LineBuffer,
        data: str | None,
        handler: EventHandler[str],
        closed: threading.Event,
    ) -> None:
        if data is None:
            closed.set()
            return
        if buffer.append(data):
            handler.emit(data)

    def _watch_exit(self) -> None:
        """Wait for the OS exit, then for both streams, then publish."""
        process = self._require_process()
        process.wait()
        logger.debug(f"Subprocess exited pid={process.pid} returncode={process.returncode}")

        # Output may still be flushing after the OS reports exit
        self._stdout_closed.wait()
        self._stderr_closed.wait()
        self._complete(process)

    def _complete(self, process: subprocess.Popen[str]) -> None:
        result = ProcessResult(
            exit_code=exit_code_of(process),
            output_data=self._output.snapshot(),
            error_data=self._error.snapshot(),
        )
        # Published before the event so callbacks can kill or wait
        with self._lock:
            self._result = result

        self.exited.emit(result)

        with self._lock:
            waiters, self._waiters = self._waiters, []
        self._finished.set()

        for loop, future in waiters:
            self._resolve_waiter(loop, future, result)

        logger.debug(
            f"Subprocess completed pid={process.pid} exit_code={result.exit_code} "
            f"stdout_lines={len(result.output_data)} stderr_lines={len(result.error_data)}"
        )

    @staticmethod
    def _resolve_waiter(
        loop: asyncio.AbstractEventLoop,
        future: asyncio.Future[ProcessResult],
        result: ProcessResult,
    ) -> None:
        def _set_result() -> None:
            if not future.done():
                future.set_result(result)

        try:
            loop.call_soon_threadsafe(_set_result)
        except RuntimeError as e:
            # Loop closed before the process finished
            logger.debug(f"Could not resolve async waiter: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_process(self) -> subprocess.Popen[str]:
        if self._process is None:
            raise InstanceError("Process instance has not been started")
        return self._process

    def _raise_if_exited(self, process: subprocess.Popen[str]) -> None:
        if self._result is not None or process.poll() is not None:
            raise ProcessAlreadyExitedError()

    def _get_result(self) -> ProcessResult:
        result = self._result
        if result is None:
            raise InstanceError("Process instance finished without a result")
        return result

    def __repr__(self) -> str:
        status = "exited" if self.has_exited else "running"
        return (
            f"ProcessInstance(pid={self.pid}, status={status}, "
            f"stdout_lines={len(self._output)}, stderr_lines={len(self._error)})"
        )
