"""One-shot helpers that launch a process and wait for it."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from .arguments import ProcessArguments
from .instance import ProcessInstance
from .result import ProcessResult

__all__ = ["start", "finish", "finish_async"]

LineHandler = Callable[[str], None]


def _build_arguments(
    path: str | ProcessArguments,
    arguments: str | Sequence[str],
    options: dict[str, Any],
) -> ProcessArguments:
    if isinstance(path, ProcessArguments):
        if arguments or options:
            raise TypeError("arguments and options cannot be combined with ProcessArguments")
        return path
    return ProcessArguments(path, arguments, **options)


def start(
    path: str | ProcessArguments,
    arguments: str | Sequence[str] = "",
    *,
    output_handler: LineHandler | None = None,
    error_handler: LineHandler | None = None,
    **options: Any,
) -> ProcessInstance:
    """Start a process, optionally wiring line handlers before it spawns.

    Args:
        path: Program to run, or a ready ProcessArguments
        arguments: Argument string or sequence (ignored with ProcessArguments)
        output_handler: Called with every accepted stdout line
        error_handler: Called with every accepted stderr line
        **options: Other ProcessArguments fields (cwd, env, ...)
    """
    process_arguments = _build_arguments(path, arguments, options)
    if output_handler is None and error_handler is None:
        return process_arguments.start()

    # Handlers go on a copy so a shared ProcessArguments keeps its subscribers
    wired = process_arguments.copy()
    if output_handler is not None:
        wired.output_data_received.subscribe(output_handler)
    if error_handler is not None:
        wired.error_data_received.subscribe(error_handler)
    return wired.start()


def finish(
    path: str | ProcessArguments,
    arguments: str | Sequence[str] = "",
    *,
    output_handler: LineHandler | None = None,
    error_handler: LineHandler | None = None,
    timeout: float | None = None,
    **options: Any,
) -> ProcessResult:
    """Start a process and block until it finishes.

    A non-zero exit code is a normal result, not an error.
    """
    with start(
        path,
        arguments,
        output_handler=output_handler,
        error_handler=error_handler,
        **options,
    ) as instance:
        return instance.wait_for_exit(timeout)


async def finish_async(
    path: str | ProcessArguments,
    arguments: str | Sequence[str] = "",
    *,
    output_handler: LineHandler | None = None,
    error_handler: LineHandler | None = None,
    timeout: float | None = None,
    **options: Any,
) -> ProcessResult:
    """Start a process and await its result.

    Timeout expiry or task cancellation kills the process.
    """
    with start(
        path,
        arguments,
        output_handler=output_handler,
        error_handler=error_handler,
        **options,
    ) as instance:
        return await instance.wait_for_exit_async(timeout)
