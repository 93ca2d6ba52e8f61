"""Repository handle: revision metadata for a source checkout."""

from __future__ import annotations

import logging
from pathlib import Path

from .commands import Command, CommandRunner
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

UNKNOWN_REVISION = "unknown"


class Repository:
    """A git checkout used to stamp version strings into build commands."""

    def __init__(self, path: str | Path, *, runner: CommandRunner | None = None) -> None:
        self.path = Path(path)
        self._runner = runner or CommandRunner()

    def _git(self, *args: str) -> str | None:
        command = Command.parse(["git", *args], cwd=str(self.path))
        try:
            result = self._runner.execute(command)
        except (ConfigurationError, OSError) as exc:
            logger.warning("Unable to query repository '%s': %s", self.path, exc)
            return None
        if not result.ok:
            logger.warning("git %s failed in '%s'", args[0], self.path)
            return None
        return result.stdout.strip()

    def current_revision(self) -> str:
        """Short hash of HEAD, or 'unknown' when it cannot be determined."""
        revision = self._git("rev-parse", "--verify", "--short", "HEAD")
        return revision or UNKNOWN_REVISION

    def is_dirty(self) -> bool:
        """True if tracked files differ from HEAD."""
        changes = self._git("diff-index", "--name-only", "HEAD")
        return bool(changes)

    def version_string(self, base: str) -> str:
        """Compose '<base> <revision>' with a '-dirty' suffix for modified trees."""
        version = f"{base} {self.current_revision()}"
        if self.is_dirty():
            version += "-dirty"
        return version

    def __repr__(self) -> str:
        return f"Repository(path={str(self.path)!r})"
