"""Environment-driven defaults for process instances.

Environment variables:
    INSTANCES_DATA_BUFFER_CAPACITY: Lines kept per output stream
        - empty/unset = unbounded (default)
        - a non-negative integer caps each buffer, oldest lines are dropped
        - invalid values fall back to unbounded

    INSTANCES_IGNORE_EMPTY_LINES: Drop empty output lines
        - true/1/yes/on = drop them
        - false/0/no/off = keep them (default)

    INSTANCES_ENCODING: Text encoding for the child's pipes
        - default utf-8, undecodable bytes are replaced

    INSTANCES_LOG_DEBUG: Debug logging
        - true/1/yes/on = log at DEBUG to a temp file
        - false/0/no/off = log at INFO to stderr (default)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_ENCODING = "utf-8"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_capacity(value: str | None) -> int | None:
    """Parse the buffer capacity; None means unbounded."""
    if not value or not value.strip():
        return None
    try:
        capacity = int(value)
    except ValueError:
        return None
    if capacity < 0:
        return None
    return capacity


def _parse_encoding(value: str | None) -> str:
    if not value or not value.strip():
        return DEFAULT_ENCODING
    return value.strip()


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp dir."""
    log_dir = Path(tempfile.gettempdir()) / "proc-instances"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"instances_debug_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """Process instance defaults.

    Attributes:
        data_buffer_capacity: Lines kept per stream (None = unbounded)
        ignore_empty_lines: Whether empty output lines are dropped
        encoding: Encoding used to decode and encode the child's pipes
        log_debug: Debug logging to a temp file
        log_file: Log file path (set when log_debug is True)
    """

    data_buffer_capacity: int | None = None
    ignore_empty_lines: bool = False
    encoding: str = DEFAULT_ENCODING
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        capacity = (
            self.data_buffer_capacity
            if self.data_buffer_capacity is not None
            else "unbounded"
        )
        return (
            f"Config(data_buffer_capacity={capacity}, "
            f"ignore_empty_lines={self.ignore_empty_lines}, "
            f"encoding={self.encoding}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """Load configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("INSTANCES_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        data_buffer_capacity=_parse_capacity(
            os.environ.get("INSTANCES_DATA_BUFFER_CAPACITY")
        ),
        ignore_empty_lines=_parse_bool(
            os.environ.get("INSTANCES_IGNORE_EMPTY_LINES"), default=False
        ),
        encoding=_parse_encoding(os.environ.get("INSTANCES_ENCODING")),
        log_debug=log_debug,
        log_file=log_file,
    )


# Lazily loaded global config
_config: Config | None = None


def get_config() -> Config:
    """Return the global config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload the global config (used by tests)."""
    global _config
    _config = load_config()
    return _config
