"""Command values and the runner that executes them."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .errors import ConfigurationError, TargetFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """A program invocation: argv plus environment and working directory."""

    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: str | None = None
    shell: bool = False

    @classmethod
    def parse(
        cls,
        line: str | Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        shell: bool = False,
    ) -> Command:
        """Build a Command from a command line or an argv sequence.

        With ``shell=True`` a string is handed to ``/bin/sh -c`` unchanged so
        pipes and redirections keep working.
        """
        if isinstance(line, str):
            argv = ("/bin/sh", "-c", line) if shell else tuple(shlex.split(line))
        else:
            argv = tuple(str(arg) for arg in line)
        if not argv:
            raise ConfigurationError("Empty command")
        return cls(argv=argv, env=dict(env or {}), cwd=cwd, shell=shell)

    def __str__(self) -> str:
        if self.shell and self.argv[:2] == ("/bin/sh", "-c"):
            return self.argv[2]
        return shlex.join(self.argv)


@dataclass
class CommandResult:
    """Outcome of a single command execution."""

    command: Command
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    skipped: bool = False
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def tail(self, lines: int = 5) -> list[str]:
        """Return the last lines of output, stderr first."""
        text = self.stderr.strip() or self.stdout.strip()
        if not text:
            return []
        return text.splitlines()[-lines:]


class CommandRunner:
    """Execute commands as subprocesses, tracking the live ones.

    Once ``terminate_all()`` has been called the runner refuses to start
    new processes until ``reset()``.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self._live: set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._terminated = False

    def execute(
        self,
        command: Command,
        *,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        skip: bool = False,
    ) -> CommandResult:
        """Run a command and capture its exit status and output.

        ``skip`` turns the call into a synthetic success without spawning
        anything. A program that cannot be found is a configuration error.
        Output is decoded as UTF-8; undecodable bytes are replaced.
        """
        if skip:
            logger.debug("Skipping command: %s", command)
            return CommandResult(command=command, exit_code=0, skipped=True)
        if self.dry_run:
            logger.info("[DRY RUN] Would run: %s", command)
            return CommandResult(command=command, exit_code=0, skipped=True)

        workdir = cwd if cwd is not None else command.cwd
        full_env = {**os.environ, **command.env, **(env or {})}
        logger.info("Running: %s", command)
        start = time.monotonic()
        with self._lock:
            if self._terminated:
                raise TargetFailure(f"Not started after abort: {command}")
            try:
                proc = subprocess.Popen(
                    list(command.argv),
                    cwd=workdir,
                    env=full_env,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    encoding="utf-8",
                    errors="replace",
                )
            except FileNotFoundError as exc:
                if workdir is not None and not os.path.isdir(workdir):
                    raise ConfigurationError(f"Working directory does not exist: {workdir}") from exc
                raise ConfigurationError(f"Required tool not found: {command.argv[0]}") from exc
            self._live.add(proc)

        try:
            stdout, stderr = proc.communicate()
        finally:
            if proc.returncode is None:
                proc.kill()
                proc.wait()
            with self._lock:
                self._live.discard(proc)

        result = CommandResult(
            command=command,
            exit_code=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration=time.monotonic() - start,
        )
        if not result.ok:
            logger.debug("Command exited with %d: %s", result.exit_code, command)
        return result

    def terminate_all(self) -> None:
        """Kill every command still running and refuse to start new ones."""
        with self._lock:
            self._terminated = True
            live = list(self._live)
        for proc in live:
            logger.warning("Killing process %d", proc.pid)
            proc.kill()

    def reset(self) -> None:
        """Allow new commands after ``terminate_all()``."""
        with self._lock:
            self._terminated = False
