"""Exception classes raised by the process instance API."""

from __future__ import annotations

__all__ = [
    "InstanceError",
    "ExecutableNotFoundError",
    "LaunchError",
    "ProcessAlreadyExitedError",
]


class InstanceError(Exception):
    """Base exception for the proc_instances package."""
    pass


class ExecutableNotFoundError(InstanceError):
    """The program to launch could not be located.

    Attributes:
        path: The executable path that was attempted
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"File not found: {path}")


class LaunchError(InstanceError):
    """Spawning the child process failed for any other reason.

    Attributes:
        path: The executable path that was attempted
        cause: The underlying error raised by the spawn
    """

    def __init__(self, path: str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to start {path}: {cause}")


class ProcessAlreadyExitedError(InstanceError):
    """A lifecycle operation was attempted on a process that has exited."""

    def __init__(self) -> None:
        super().__init__("The process instance has already exited")
