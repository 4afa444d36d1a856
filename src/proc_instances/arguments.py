"""Launch configuration and the launcher that spawns process instances."""

from __future__ import annotations

import errno
import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .config import get_config
from .errors import ExecutableNotFoundError, LaunchError
from .events import EventHandler
from .instance import ProcessInstance
from .result import ProcessResult

__all__ = ["ProcessArguments", "copy_subscriptions", "start_process"]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


@dataclass(frozen=True)
class ProcessArguments:
    """How to launch a child process.

    Attributes:
        path: Program to run (resolved through PATH when not a path)
        arguments: Argument string, split with shlex (quoting only, no
            shell features), or an explicit sequence of arguments
        cwd: Working directory (None = inherit)
        env: Variables added to or overriding the parent environment
        user: POSIX user name or uid to run the child as
        ignore_empty_lines: Drop empty output lines (None = config default)
        data_buffer_capacity: Lines kept per stream (None = config default)
        encoding: Pipe encoding (None = config default)

    Subscriptions on ``exited``, ``output_data_received`` and
    ``error_data_received`` are copied onto every instance started from
    these arguments, before the process is spawned.
    """

    path: str
    arguments: str | Sequence[str] = ""
    cwd: Path | str | None = None
    env: Mapping[str, str] | None = None
    user: str | int | None = None
    ignore_empty_lines: bool | None = None
    data_buffer_capacity: int | None = None
    encoding: str | None = None

    exited: EventHandler[ProcessResult] = field(
        default_factory=lambda: EventHandler("exited"), compare=False, repr=False
    )
    output_data_received: EventHandler[str] = field(
        default_factory=lambda: EventHandler("output_data_received"),
        compare=False,
        repr=False,
    )
    error_data_received: EventHandler[str] = field(
        default_factory=lambda: EventHandler("error_data_received"),
        compare=False,
        repr=False,
    )

    @property
    def argv(self) -> list[str]:
        """Full argument vector, program first."""
        if isinstance(self.arguments, str):
            args = shlex.split(self.arguments, posix=not IS_WINDOWS)
        else:
            args = list(self.arguments)
        return [self.path, *args]

    def start(self) -> ProcessInstance:
        """Spawn the process and return its live instance."""
        return start_process(self)

    def copy(self) -> ProcessArguments:
        """Copy with fresh notification lists carrying the same subscribers."""
        clone = replace(
            self,
            exited=EventHandler("exited"),
            output_data_received=EventHandler("output_data_received"),
            error_data_received=EventHandler("error_data_received"),
        )
        copy_subscriptions(self, clone)
        return clone


def copy_subscriptions(source: Any, target: Any) -> None:
    """Subscribe target's notifications to everything source has."""
    for callback in source.exited.subscribers:
        target.exited.subscribe(callback)
    for callback in source.output_data_received.subscribers:
        target.output_data_received.subscribe(callback)
    for callback in source.error_data_received.subscribers:
        target.error_data_received.subscribe(callback)


def _build_popen_kwargs(arguments: ProcessArguments, encoding: str) -> dict[str, Any]:
    """Build subprocess.Popen kwargs for redirected, line-based streams."""
    kwargs: dict[str, Any] = {
        "stdin": subprocess.PIPE,
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "text": True,
        "encoding": encoding,
        "errors": "replace",
    }

    if arguments.cwd is not None:
        kwargs["cwd"] = arguments.cwd

    if arguments.env is not None:
        env = dict(os.environ)
        env.update(arguments.env)
        kwargs["env"] = env

    if arguments.user is not None:
        kwargs["user"] = arguments.user

    if IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

    return kwargs


def _is_executable_missing(error: OSError, arguments: ProcessArguments) -> bool:
    """Whether a spawn error means the program itself was not found.

    A missing working directory also surfaces as ENOENT, but carries the
    directory as its filename.
    """
    if not isinstance(error, FileNotFoundError) and error.errno != errno.ENOENT:
        return False
    if arguments.cwd is not None and error.filename is not None:
        return str(error.filename) != str(arguments.cwd)
    return True


def start_process(arguments: ProcessArguments) -> ProcessInstance:
    """Spawn a child process and wire it into a new ProcessInstance.

    Exactly one spawn is attempted; reading starts immediately after it
    succeeds.

    Raises:
        ExecutableNotFoundError: If the program could not be located
        LaunchError: If spawning failed for any other reason
    """
    config = get_config()
    ignore_empty_lines = (
        arguments.ignore_empty_lines
        if arguments.ignore_empty_lines is not None
        else config.ignore_empty_lines
    )
    capacity = (
        arguments.data_buffer_capacity
        if arguments.data_buffer_capacity is not None
        else config.data_buffer_capacity
    )
    encoding = arguments.encoding or config.encoding

    instance = ProcessInstance(
        ignore_empty_lines=ignore_empty_lines,
        data_buffer_capacity=capacity,
    )
    copy_subscriptions(arguments, instance)

    argv = arguments.argv
    try:
        process = subprocess.Popen(argv, **_build_popen_kwargs(arguments, encoding))
    except OSError as e:
        if _is_executable_missing(e, arguments):
            logger.debug(f"Executable not found: {arguments.path}")
            raise ExecutableNotFoundError(arguments.path) from e
        logger.debug(f"Failed to start {arguments.path}: {e}")
        raise LaunchError(arguments.path, e) from e
    except (KeyError, ValueError, LookupError) as e:
        # Raised by the argument checks in Popen before any child exists
        logger.debug(f"Failed to start {arguments.path}: {e!r}")
        raise LaunchError(arguments.path, e) from e

    logger.debug(
        f"Started subprocess pid={process.pid} "
        f"argv={argv[0]} cwd={arguments.cwd or os.getcwd()}"
    )

    instance._attach(process)
    return instance
