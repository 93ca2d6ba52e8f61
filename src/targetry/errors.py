"""Error types for configuration problems and target failures."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .commands import CommandResult
    from .report import RunReport


class ConfigurationError(ValueError):
    """Fatal problem with the build configuration; aborts the run."""

    def __init__(self, message: str, *, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target

    def __str__(self) -> str:
        message = super().__str__()
        if self.target:
            return f"{self.target}: {message}"
        return message


class CycleError(ConfigurationError):
    """The dependency relation among targets contains a cycle."""

    def __init__(self, path: list[str]) -> None:
        super().__init__(f"Dependency cycle detected: {' -> '.join(path)}")
        self.path = path


class BuildAborted(ConfigurationError):
    """A configuration error interrupted a run that had already started."""

    def __init__(self, cause: ConfigurationError, report: RunReport) -> None:
        super().__init__(str(cause))
        self.cause = cause
        self.report = report


class TargetFailure(Exception):
    """Ordinary failure of a target action."""


class CommandFailed(TargetFailure):
    """A command exited with a non-zero status."""

    def __init__(self, result: CommandResult) -> None:
        super().__init__(f"Command failed with exit status {result.exit_code}: {result.command}")
        self.result = result
