"""Typed build options resolved once at startup."""

from __future__ import annotations

import logging
import os
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class Variant(StrEnum):
    """Build variants."""

    NODEOS = "nodeos"
    ELF = "elf"
    RTEMS = "rtems"
    LINUX = "linux"
    GDB = "gdb"


class Toolchain(StrEnum):
    """Toolchain flavors."""

    DEFAULT = "default"
    BARE = "bare"
    RTEMS = "rtems"
    LINUX = "linux"
    EMBEDDED = "embedded"


class ExecutionPlatform(StrEnum):
    """Where validation programs execute."""

    HW = "hw"
    SIM = "sim"


_EXECUTION_BOARDS: dict[ExecutionPlatform, tuple[str, str]] = {
    ExecutionPlatform.SIM: ("iss", ".ref"),
    ExecutionPlatform.HW: ("jtag-runner", ".hw.ref"),
}


def _default_jobs() -> int:
    return os.cpu_count() or 1


class BuildOptions(BaseModel):
    """Options shared by every target action of a build session.

    Unknown keys are kept as extra attributes so configuration files can
    carry free-form values for their own commands.
    """

    model_config = ConfigDict(extra="allow")

    arch: str = ""
    variant: Variant = Variant.ELF
    toolchain: Toolchain = Toolchain.DEFAULT
    execution_platform: ExecutionPlatform = ExecutionPlatform.SIM
    toolroot: str = ""
    prefix: str = ""
    output: str = ""
    workspace: str = Field(default_factory=os.getcwd)
    version: str = "unknown"
    host: str = ""
    jobs: int = Field(default_factory=_default_jobs, ge=1)

    @property
    def execution_board(self) -> str:
        """Board name used by validation runs on the selected platform."""
        board, _ = _EXECUTION_BOARDS[self.execution_platform]
        return f"{self.arch}-{board}" if self.arch else board

    @property
    def reference_suffix(self) -> str:
        """Suffix of the reference file validation results are diffed against."""
        _, suffix = _EXECUTION_BOARDS[self.execution_platform]
        return suffix

    def get(self, key: str, default: Any = None) -> Any:
        """Return an option by name, including extra keys."""
        return getattr(self, key, default)


def parse_overrides(pairs: list[str]) -> dict[str, str]:
    """Parse KEY=VALUE strings into a dict."""
    overrides: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Invalid option override '{pair}'; expected KEY=VALUE")
        overrides[key] = value
    return overrides


def load_options(*sources: dict[str, Any] | None) -> BuildOptions:
    """Merge option dicts (later sources win) and validate them."""
    merged: dict[str, Any] = {}
    for source in sources:
        if source:
            merged.update(source)
    logger.debug("Resolving build options: %s", sorted(merged))
    try:
        return BuildOptions.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid build options: {exc}") from exc
