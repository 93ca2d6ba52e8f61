"""Runtime execution context passed to every target action."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .commands import Command, CommandResult, CommandRunner
from .errors import CommandFailed, ConfigurationError, TargetFailure

if TYPE_CHECKING:
    from .repository import Repository
    from .targets import Target

logger = logging.getLogger(__name__)

O = TypeVar("O")


class Context(Generic[O]):
    """Runtime state for one target (or one fan-out key) of a build run.

    Commands executed through the context are recorded on it; validation
    failures accumulate in ``failures`` instead of stopping the action.
    """

    def __init__(
        self,
        target: Target,
        options: O,
        *,
        runner: CommandRunner,
        targets: Mapping[str, Target] | None = None,
        repository: Repository | None = None,
        builder: str = "",
        key: str | None = None,
        dry_run: bool = False,
        cancel: threading.Event | None = None,
    ) -> None:
        self.target = target
        self.options = options
        self.runner = runner
        self.targets = targets or {}
        self.repository = repository
        self.builder = builder
        self.key = key
        self.dry_run = dry_run
        self.cancel = cancel or threading.Event()
        self.commands: list[CommandResult] = []
        self.messages: list[str] = []
        self.failures: list[str] = []

    def child(self, key: str) -> Context[O]:
        """A context for one fan-out key with its own recording."""
        return Context(
            self.target,
            self.options,
            runner=self.runner,
            targets=self.targets,
            repository=self.repository,
            builder=self.builder,
            key=key,
            dry_run=self.dry_run,
            cancel=self.cancel,
        )

    @property
    def label(self) -> str:
        if self.key is None:
            return self.target.name
        return f"{self.target.name}[{self.key}]"

    def _execute(
        self,
        command: Command | str | Sequence[str],
        *,
        cwd: str | os.PathLike[str] | None,
        env: Mapping[str, str] | None,
        skip: bool,
        shell: bool,
    ) -> CommandResult:
        if self.cancel.is_set():
            raise TargetFailure(f"{self.label}: run aborted")
        if not isinstance(command, Command):
            command = Command.parse(command, shell=shell)
        result = self.runner.execute(command, cwd=cwd, env=env, skip=skip)
        self.commands.append(result)
        return result

    def run(
        self,
        command: Command | str | Sequence[str],
        *,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        skip: bool = False,
        shell: bool = False,
    ) -> CommandResult:
        """Run a build step; a non-zero exit fails the target."""
        result = self._execute(command, cwd=cwd, env=env, skip=skip, shell=shell)
        if not result.ok:
            raise CommandFailed(result)
        return result

    def valid(
        self,
        command: Command | str | Sequence[str],
        *,
        fail_msg: str | None = None,
        success_msg: str | None = None,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        skip: bool = False,
        shell: bool = False,
    ) -> bool:
        """Run a validation step; a failure is recorded and the action continues."""
        result = self._execute(command, cwd=cwd, env=env, skip=skip, shell=shell)
        if result.ok:
            if success_msg:
                logger.info("%s: %s", self.label, success_msg)
                self.messages.append(success_msg)
            return True
        message = fail_msg or f"Validation failed: {result.command}"
        logger.error("%s: %s", self.label, message)
        self.failures.append(message)
        return False

    def require(self, path: str | os.PathLike[str], message: str | None = None) -> Path:
        """Return ``path`` if it exists, else abort the run."""
        path = Path(path)
        if not path.exists() and not self.dry_run:
            raise ConfigurationError(
                message or f"Required path does not exist: {path}", target=self.target.name
            )
        return path

    def results_of(self, name: str) -> list[str]:
        """Artifacts declared by another target."""
        if name not in self.targets:
            raise ConfigurationError(f"Unknown target: '{name}'", target=self.target.name)
        return list(self.targets[name].results)

    @property
    def revision(self) -> str:
        if self.repository is None:
            return "unknown"
        return self.repository.current_revision()

    @property
    def version(self) -> str:
        """The configured version stamped with the repository revision."""
        base = getattr(self.options, "version", "unknown")
        if self.repository is None:
            return base
        return self.repository.version_string(base)

    def variables(self) -> dict[str, Any]:
        """Names available to ``${...}`` references in declarative commands."""
        return {
            "options": self.options,
            "target": self.target.name,
            "key": self.key or "",
            "env": dict(os.environ),
            "results": {name: list(t.results) for name, t in self.targets.items()},
            "revision": lambda: self.revision,
            "version": lambda: self.version,
        }
