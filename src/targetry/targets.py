"""Target models: named units of work with dependencies and a status."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, PrivateAttr, field_validator

if TYPE_CHECKING:
    from .context import Context

logger = logging.getLogger(__name__)

Action = Callable[..., bool | None]


class TargetStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (TargetStatus.SUCCEEDED, TargetStatus.FAILED, TargetStatus.SKIPPED)


_TRANSITIONS: dict[TargetStatus, set[TargetStatus]] = {
    TargetStatus.PENDING: {TargetStatus.RUNNING, TargetStatus.FAILED, TargetStatus.SKIPPED},
    TargetStatus.RUNNING: {TargetStatus.SUCCEEDED, TargetStatus.FAILED, TargetStatus.SKIPPED},
    TargetStatus.SUCCEEDED: set(),
    TargetStatus.FAILED: set(),
    TargetStatus.SKIPPED: set(),
}


class Target(BaseModel):
    """A named unit of work run after all of its dependencies."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    dependencies: list[Target] = Field(default_factory=list)
    action: Action | None = None
    skip: bool = False
    description: str = ""
    results: list[str] = Field(default_factory=list)

    _status: TargetStatus = PrivateAttr(default=TargetStatus.PENDING)

    @property
    def status(self) -> TargetStatus:
        return self._status

    def transition(self, status: TargetStatus) -> None:
        """Move to a new status, rejecting transitions the lifecycle forbids."""
        if status not in _TRANSITIONS[self._status]:
            raise RuntimeError(
                f"Target '{self.name}' cannot move from {self._status} to {status}"
            )
        logger.debug("Target '%s': %s -> %s", self.name, self._status, status)
        self._status = status

    def reset(self) -> None:
        self._status = TargetStatus.PENDING

    def add_result(self, path: str | Path) -> None:
        """Declare an artifact produced by this target."""
        self.results.append(str(path))

    def invoke(self, ctx: Context) -> bool | None:
        """Run the action; a target without one only aggregates its dependencies."""
        if self.action is None:
            logger.debug("Target '%s' has no action", self.name)
            return True
        return self.action(ctx)

    def __repr__(self) -> str:
        deps = [dep.name for dep in self.dependencies]
        return f"{type(self).__name__}(name={self.name!r}, dependencies={deps}, status={self._status})"


class ParallelTarget(Target):
    """A target whose action fans out over a set of independent keys."""

    keys: list[str] = Field(default_factory=list)

    @field_validator("keys")
    @classmethod
    def _unique_keys(cls, keys: list[str]) -> list[str]:
        if len(set(keys)) != len(keys):
            raise ValueError(f"Fan-out keys must be unique: {keys}")
        return keys


class CleanTarget(Target):
    """Remove build artifacts at the given paths."""

    paths: list[str] = Field(default_factory=list)

    def invoke(self, ctx: Context) -> bool | None:
        if self.action is not None:
            return self.action(ctx)
        for path in map(Path, self.paths):
            if not path.exists():
                logger.debug("Nothing to clean at '%s'", path)
            elif ctx.dry_run:
                logger.info("[DRY RUN] Would remove %s", path)
            elif path.is_dir() and not path.is_symlink():
                logger.info("Removing %s", path)
                shutil.rmtree(path)
            else:
                logger.info("Removing %s", path)
                path.unlink()
        return True
