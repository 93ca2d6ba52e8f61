"""HCL loading: render and parse .hcl target graph configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .workspace import Workspace

import hcl2
import jinja2

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def scan(
    path: str | Path,
    *,
    recurse: bool = True,
    context: dict[str, Any] | None = None,
) -> Workspace:
    """Load a configuration file or every .hcl file in a directory."""
    from .workspace import Workspace

    ws = Workspace(context=context)
    ws.scan(path, recurse=recurse)
    return ws


def render(text: str, context: dict[str, Any] | None = None) -> str:
    """Render configuration text as a Jinja2 template."""
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    return env.from_string(text).render(context or {})


def load(
    file: Path,
    *,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load and parse a single HCL file, rendering Jinja2 templates with context."""
    logger.debug("Reading %s", file)
    try:
        text = render(file.read_text(), context)
    except jinja2.TemplateError as exc:
        raise ConfigurationError(f"{file}: {exc}") from exc
    try:
        return hcl2.loads(text)
    except Exception as exc:
        raise ConfigurationError(f"{file}: invalid HCL: {exc}") from exc
