"""Terminal result of a process instance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = ["ProcessResult", "EXIT_CODE_NOT_EXITED", "exit_code_of"]

# Reported when the process object has no exit code at assembly time.
# Real exit codes are 0-255 on POSIX and negative signal numbers (-1..-64)
# for signalled children, so -100 cannot collide with either.
EXIT_CODE_NOT_EXITED = -100


@dataclass(frozen=True)
class ProcessResult:
    """Exit code plus the output captured up to termination.

    Attributes:
        exit_code: Child exit code, or EXIT_CODE_NOT_EXITED
        output_data: Captured stdout lines, oldest first
        error_data: Captured stderr lines, oldest first
    """

    exit_code: int
    output_data: tuple[str, ...] = ()
    error_data: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def exit_code_of(process: Any) -> int:
    """Exit code of a Popen-like object, never coercing "still running" to 0."""
    returncode = process.returncode
    if returncode is None:
        return EXIT_CODE_NOT_EXITED
    return returncode
