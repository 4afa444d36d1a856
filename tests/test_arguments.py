"""ProcessArguments and launcher tests."""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path
from unittest import mock

import pytest

from proc_instances.arguments import IS_WINDOWS, ProcessArguments, start_process
from proc_instances.config import reload_config
from proc_instances.errors import ExecutableNotFoundError, InstanceError, LaunchError
from proc_instances.result import ProcessResult


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """Create temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


def _print_script(expression: str) -> list[str]:
    return ["-c", f"import os, sys; print({expression})"]


class TestArgv:
    """Argument vector construction."""

    def test_string_arguments_are_split(self):
        arguments = ProcessArguments("prog", 'a "b c" d')
        if IS_WINDOWS:
            assert arguments.argv[0] == "prog"
        else:
            assert arguments.argv == ["prog", "a", "b c", "d"]

    def test_sequence_arguments_are_kept(self):
        arguments = ProcessArguments("prog", ["a b", "$HOME", "*"])
        assert arguments.argv == ["prog", "a b", "$HOME", "*"]

    def test_no_arguments(self):
        assert ProcessArguments("prog").argv == ["prog"]

    def test_frozen(self):
        arguments = ProcessArguments("prog")
        with pytest.raises(AttributeError):
            arguments.path = "other"  # type: ignore

    def test_equality_ignores_subscriptions(self):
        a = ProcessArguments("prog", "x")
        b = ProcessArguments("prog", "x")
        a.exited.subscribe(print)

        assert a == b


class TestLaunch:
    """Spawning processes."""

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX quoting rules")
    def test_string_arguments_reach_child(self):
        script = '"import sys; print(sys.argv[1:])" "one two" three'
        with ProcessArguments(sys.executable, f"-c {script}").start() as instance:
            result = instance.wait_for_exit()

        assert result.output_data == ("['one two', 'three']",)

    def test_working_directory(self, temp_workspace: Path):
        arguments = ProcessArguments(
            sys.executable,
            _print_script("os.getcwd()"),
            cwd=temp_workspace,
        )
        with arguments.start() as instance:
            result = instance.wait_for_exit()

        assert Path(result.output_data[0]).resolve() == temp_workspace.resolve()

    def test_environment_overrides_are_merged(self):
        arguments = ProcessArguments(
            sys.executable,
            _print_script("os.environ['TEST_VAR'], 'PATH' in os.environ"),
            env={"TEST_VAR": "test_value_123"},
        )
        with arguments.start() as instance:
            result = instance.wait_for_exit()

        assert result.output_data == ("test_value_123 True",)

    def test_config_defaults_apply(self, make_arguments):
        with mock.patch.dict(
            os.environ,
            {"INSTANCES_DATA_BUFFER_CAPACITY": "2", "INSTANCES_IGNORE_EMPTY_LINES": "true"},
        ):
            reload_config()
            with make_arguments("--stdout", "4", "--empty-lines").start() as instance:
                result = instance.wait_for_exit()

        assert result.output_data == ("out3", "out4")

    def test_explicit_options_override_config(self, make_arguments):
        with mock.patch.dict(os.environ, {"INSTANCES_DATA_BUFFER_CAPACITY": "1"}):
            reload_config()
            arguments = make_arguments("--stdout", "3", data_buffer_capacity=5)
            with arguments.start() as instance:
                result = instance.wait_for_exit()

        assert result.output_data == ("out1", "out2", "out3")

    def test_encoding_replaces_undecodable_bytes(self):
        script = "import sys; sys.stdout.buffer.write(b'ok\\xff\\n')"
        arguments = ProcessArguments(sys.executable, ["-c", script], encoding="utf-8")
        with arguments.start() as instance:
            result = instance.wait_for_exit()

        assert result.output_data == ("ok\ufffd",)

    def test_start_process_function(self, make_arguments):
        with start_process(make_arguments("--stdout", "1")) as instance:
            assert instance.pid is not None
            assert instance.wait_for_exit().output_data == ("out1",)

    def test_each_start_is_a_new_instance(self, make_arguments):
        arguments = make_arguments("--stdout", "1")
        with arguments.start() as first, arguments.start() as second:
            assert first is not second
            assert first.wait_for_exit() == second.wait_for_exit()

    def test_subscriptions_copied_to_every_instance(self, make_arguments):
        arguments = make_arguments("--stdout", "1")
        exited: list[ProcessResult] = []
        arguments.exited.subscribe(exited.append)

        for _ in range(2):
            with arguments.start() as instance:
                instance.wait_for_exit()

        assert len(exited) == 2

    def test_attach_twice_rejected(self, make_arguments):
        with make_arguments().start() as instance:
            instance.wait_for_exit()
            with pytest.raises(InstanceError):
                instance._attach(instance._process)  # type: ignore[arg-type]


class TestLaunchErrors:
    """Spawn failures are mapped to domain errors."""

    def test_executable_not_found(self):
        path = f"nonexistent_command_{uuid.uuid4().hex}"

        with pytest.raises(ExecutableNotFoundError) as exc_info:
            ProcessArguments(path, "--version").start()

        assert exc_info.value.path == path
        assert path in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_executable_not_found_absolute_path(self, tmp_path: Path):
        path = str(tmp_path / "missing" / "program")

        with pytest.raises(ExecutableNotFoundError) as exc_info:
            ProcessArguments(path).start()

        assert exc_info.value.path == path

    def test_missing_working_directory_is_launch_error(self, tmp_path: Path):
        missing = tmp_path / "does-not-exist"

        with pytest.raises(LaunchError) as exc_info:
            ProcessArguments(sys.executable, "-c pass", cwd=missing).start()

        assert not isinstance(exc_info.value, ExecutableNotFoundError)
        assert isinstance(exc_info.value.cause, OSError)
        assert exc_info.value.path == sys.executable

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX permission bits")
    def test_non_executable_file_is_launch_error(self, tmp_path: Path):
        script = tmp_path / "not_executable.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        with pytest.raises(LaunchError) as exc_info:
            ProcessArguments(str(script)).start()

        assert isinstance(exc_info.value.cause, PermissionError)

    def test_other_os_errors_are_launch_errors(self):
        with mock.patch(
            "proc_instances.arguments.subprocess.Popen",
            side_effect=OSError(24, "Too many open files"),
        ):
            with pytest.raises(LaunchError) as exc_info:
                ProcessArguments("prog").start()

        assert exc_info.value.cause.errno == 24
        assert exc_info.value.__cause__ is exc_info.value.cause

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX run-as user")
    def test_unknown_user_is_launch_error(self):
        user = f"no_such_user_{uuid.uuid4().hex[:8]}"

        with pytest.raises(LaunchError) as exc_info:
            ProcessArguments(sys.executable, "-c pass", user=user).start()

        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.__cause__ is exc_info.value.cause
        assert exc_info.value.path == sys.executable

    def test_null_byte_in_arguments_is_launch_error(self):
        with pytest.raises(LaunchError) as exc_info:
            ProcessArguments(sys.executable, ["-c", "pass\x00"]).start()

        assert isinstance(exc_info.value.cause, ValueError)

    def test_unknown_encoding_is_launch_error(self):
        with pytest.raises(LaunchError) as exc_info:
            ProcessArguments(sys.executable, "-c pass", encoding="no-such-codec").start()

        assert isinstance(exc_info.value.cause, LookupError)

    def test_spawn_attempted_exactly_once(self):
        with mock.patch(
            "proc_instances.arguments.subprocess.Popen",
            side_effect=FileNotFoundError(2, "No such file or directory", "prog"),
        ) as popen:
            with pytest.raises(ExecutableNotFoundError):
                ProcessArguments("prog").start()

        assert popen.call_count == 1
