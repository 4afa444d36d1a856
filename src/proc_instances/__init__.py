"""proc-instances - run a child process and capture its output.

Environment variables:
    INSTANCES_DATA_BUFFER_CAPACITY: Lines kept per stream (default unbounded)
    INSTANCES_IGNORE_EMPTY_LINES: Drop empty output lines (default false)
    INSTANCES_ENCODING: Pipe encoding (default utf-8)
    INSTANCES_LOG_DEBUG: Debug logging to a temp file (default false)

Usage:
    from proc_instances import finish
    result = finish("git", "status --short")
"""

__version__ = "0.1.0"

from .arguments import ProcessArguments, start_process
from .buffer import LineBuffer
from .errors import (
    ExecutableNotFoundError,
    InstanceError,
    LaunchError,
    ProcessAlreadyExitedError,
)
from .events import EventHandler
from .facade import finish, finish_async, start
from .instance import ProcessInstance
from .result import EXIT_CODE_NOT_EXITED, ProcessResult

__all__ = [
    "__version__",
    "EXIT_CODE_NOT_EXITED",
    "EventHandler",
    "ExecutableNotFoundError",
    "InstanceError",
    "LaunchError",
    "LineBuffer",
    "ProcessAlreadyExitedError",
    "ProcessArguments",
    "ProcessInstance",
    "ProcessResult",
    "finish",
    "finish_async",
    "start",
    "start_process",
]
