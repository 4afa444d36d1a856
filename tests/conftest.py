"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest import mock

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from proc_instances.arguments import ProcessArguments  # noqa: E402
from proc_instances.config import reload_config  # noqa: E402

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_PROGRAM = FIXTURES_DIR / "fake_program.py"


@pytest.fixture(autouse=True)
def clean_config() -> Iterator[None]:
    """Run every test with INSTANCES_* unset and a fresh global config."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("INSTANCES_")}
    with mock.patch.dict(os.environ, env, clear=True):
        reload_config()
        yield
    reload_config()


@pytest.fixture
def fake_program() -> Path:
    """Path to the fake child program."""
    return FAKE_PROGRAM


@pytest.fixture
def make_arguments() -> Callable[..., ProcessArguments]:
    """Build ProcessArguments running the fake program with the given flags."""

    def _make(*flags: str, **options: Any) -> ProcessArguments:
        return ProcessArguments(
            sys.executable,
            [str(FAKE_PROGRAM), *flags],
            **options,
        )

    return _make
