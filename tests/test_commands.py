"""Tests for targetry.commands."""

from __future__ import annotations

import sys
import threading
import time

import pytest

from targetry.commands import Command, CommandResult, CommandRunner
from targetry.errors import ConfigurationError, TargetFailure

PY = sys.executable


class TestCommand:
    def test_parse_string(self):
        cmd = Command.parse("make -j4 all")
        assert cmd.argv == ("make", "-j4", "all")

    def test_parse_respects_quotes(self):
        cmd = Command.parse("make VERSION='1.0 abc123'")
        assert cmd.argv == ("make", "VERSION=1.0 abc123")

    def test_parse_sequence(self):
        cmd = Command.parse(["diff", "-u", "a b", 3])
        assert cmd.argv == ("diff", "-u", "a b", "3")

    def test_parse_shell(self):
        cmd = Command.parse("objdump -d a.o > a.out", shell=True)
        assert cmd.argv == ("/bin/sh", "-c", "objdump -d a.o > a.out")
        assert str(cmd) == "objdump -d a.o > a.out"

    def test_parse_empty_raises(self):
        with pytest.raises(ConfigurationError, match="Empty"):
            Command.parse("   ")

    def test_str_quotes_arguments(self):
        assert str(Command.parse(["echo", "a b"])) == "echo 'a b'"

    def test_env_and_cwd(self):
        cmd = Command.parse("make", env={"ARCH": "k1"}, cwd="/tmp")
        assert cmd.env == {"ARCH": "k1"}
        assert cmd.cwd == "/tmp"


class TestCommandResult:
    def test_ok(self):
        cmd = Command.parse("true")
        assert CommandResult(command=cmd, exit_code=0).ok
        assert not CommandResult(command=cmd, exit_code=2).ok

    def test_tail_prefers_stderr(self):
        cmd = Command.parse("x")
        result = CommandResult(command=cmd, exit_code=1, stdout="out", stderr="e1\ne2\ne3")
        assert result.tail(2) == ["e2", "e3"]

    def test_tail_falls_back_to_stdout(self):
        cmd = Command.parse("x")
        result = CommandResult(command=cmd, exit_code=1, stdout="only\n")
        assert result.tail() == ["only"]

    def test_tail_empty(self):
        assert CommandResult(command=Command.parse("x"), exit_code=1).tail() == []


class TestCommandRunner:
    def test_captures_stdout(self):
        result = CommandRunner().execute(Command.parse([PY, "-c", "print('hello')"]))
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.skipped is False

    def test_captures_exit_status_and_stderr(self):
        code = "import sys; sys.stderr.write('bad\\n'); sys.exit(3)"
        result = CommandRunner().execute(Command.parse([PY, "-c", code]))
        assert result.exit_code == 3
        assert result.stderr.strip() == "bad"

    def test_environment_overlay(self, monkeypatch):
        monkeypatch.setenv("TARGETRY_BASE", "base")
        code = "import os; print(os.environ['TARGETRY_BASE'], os.environ['A'], os.environ['B'])"
        cmd = Command.parse([PY, "-c", code], env={"A": "from-command", "B": "from-command"})
        result = CommandRunner().execute(cmd, env={"B": "from-call"})
        assert result.stdout.split() == ["base", "from-command", "from-call"]

    def test_working_directory(self, tmp_path):
        cmd = Command.parse([PY, "-c", "import os; print(os.getcwd())"])
        result = CommandRunner().execute(cmd, cwd=tmp_path)
        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_command_cwd_used_by_default(self, tmp_path):
        cmd = Command.parse([PY, "-c", "import os; print(os.getcwd())"], cwd=str(tmp_path))
        result = CommandRunner().execute(cmd)
        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_skip_spawns_nothing(self):
        cmd = Command.parse("definitely-not-a-real-program-xyz")
        result = CommandRunner().execute(cmd, skip=True)
        assert result.ok
        assert result.skipped is True

    def test_dry_run_spawns_nothing(self):
        cmd = Command.parse("definitely-not-a-real-program-xyz")
        result = CommandRunner(dry_run=True).execute(cmd)
        assert result.ok
        assert result.skipped is True

    def test_missing_program_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="definitely-not-a-real-program-xyz"):
            CommandRunner().execute(Command.parse("definitely-not-a-real-program-xyz"))

    def test_missing_working_directory(self, tmp_path):
        cmd = Command.parse([PY, "-c", "pass"])
        with pytest.raises(ConfigurationError, match="Working directory"):
            CommandRunner().execute(cmd, cwd=tmp_path / "missing")

    def test_shell_command(self):
        result = CommandRunner().execute(Command.parse("echo one | tr o O", shell=True))
        assert result.stdout.strip() == "One"

    def test_terminate_all_without_live_processes(self):
        CommandRunner().terminate_all()

    def test_undecodable_output_is_not_an_error(self):
        cmd = Command.parse([PY, "-c", "import sys; sys.stdout.buffer.write(b'\\xffok\\n')"])
        result = CommandRunner().execute(cmd)
        assert result.ok
        assert result.exit_code == 0
        assert result.stdout == "\ufffdok\n"

    def test_terminate_all_kills_running_command(self):
        runner = CommandRunner()
        results: list[CommandResult] = []
        cmd = Command.parse([PY, "-c", "import time; time.sleep(30)"])
        worker = threading.Thread(target=lambda: results.append(runner.execute(cmd)))
        worker.start()
        deadline = time.monotonic() + 10
        while not runner._live and time.monotonic() < deadline:
            time.sleep(0.01)
        assert runner._live

        start = time.monotonic()
        runner.terminate_all()
        worker.join(timeout=10)
        assert not worker.is_alive()
        assert time.monotonic() - start < 10
        assert results[0].exit_code != 0
        assert not runner._live

    def test_no_new_commands_after_terminate_all(self):
        runner = CommandRunner()
        runner.terminate_all()
        with pytest.raises(TargetFailure, match="Not started after abort"):
            runner.execute(Command.parse([PY, "-c", "pass"]))
        runner.reset()
        assert runner.execute(Command.parse([PY, "-c", "pass"])).ok
