"""Command line entry point and logging setup."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from .arguments import ProcessArguments
from .config import get_config
from .errors import ExecutableNotFoundError, LaunchError
from .facade import finish_async

__all__ = ["configure_logging", "run", "main"]

logger = logging.getLogger(__name__)

# Shell conventions for "command not found" / "cannot execute"
EXIT_NOT_FOUND = 127
EXIT_CANNOT_EXECUTE = 126

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging() -> None:
    """Send package logs to stderr, or to a temp file in debug mode."""
    config = get_config()
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # Third-party loggers stay at WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("proc_instances").setLevel(log_level)

    if config.log_debug:
        logger.debug(f"Debug log: {config.log_file}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proc-instances",
        description="Run a program, echo its output and exit with its exit code.",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Kill the program after SECONDS")
    parser.add_argument("--capacity", type=int, default=None, help="Lines kept per stream")
    parser.add_argument("--ignore-empty-lines", action="store_true", help="Drop empty output lines")
    parser.add_argument("program", help="Program to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed to the program")
    return parser


async def run(namespace: argparse.Namespace) -> int:
    """Run the requested program and return the exit code to use."""
    arguments = ProcessArguments(
        path=namespace.program,
        arguments=list(namespace.args),
        data_buffer_capacity=namespace.capacity,
        ignore_empty_lines=True if namespace.ignore_empty_lines else None,
    )

    def echo_output(line: str) -> None:
        print(line, flush=True)

    def echo_error(line: str) -> None:
        print(line, file=sys.stderr, flush=True)

    try:
        result = await finish_async(
            arguments,
            output_handler=echo_output,
            error_handler=echo_error,
            timeout=namespace.timeout,
        )
    except ExecutableNotFoundError as e:
        logger.error(str(e))
        return EXIT_NOT_FOUND
    except LaunchError as e:
        logger.error(str(e))
        return EXIT_CANNOT_EXECUTE

    logger.debug(
        f"{namespace.program} exited with {result.exit_code} "
        f"({len(result.output_data)} stdout / {len(result.error_data)} stderr lines kept)"
    )
    return result.exit_code


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    namespace = _build_parser().parse_args(argv)
    configure_logging()
    exit_code = asyncio.run(run(namespace))
    # Signalled children report negative codes
    sys.exit(exit_code if exit_code >= 0 else 128 - exit_code)
