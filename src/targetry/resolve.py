"""Variable expansion for declarative commands: ${options.arch}, ${key} and friends."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# group 1 is the escape: "$${name}" stays literal as "${name}"
_REFERENCE = re.compile(r"(\$?)\$\{([^{}]+)\}")


class Resolver:
    """Expand ``${dotted.name}`` references against a table of variables.

    Names walk through mappings (``env.HOME``, ``results.build``) and object
    attributes (``options.prefix``). A callable at the end of a name is
    called, so values such as ``version`` are only computed when used.
    """

    def __init__(self, variables: Mapping[str, Any] | None = None) -> None:
        self.variables = dict(variables or {})

    def lookup(self, name: str) -> Any:
        value: Any = self.variables
        for part in name.split("."):
            if isinstance(value, Mapping):
                if part not in value:
                    raise ConfigurationError(f"Undefined variable '{name}'")
                value = value[part]
            elif not isinstance(value, (str, Sequence)) and hasattr(value, part):
                value = getattr(value, part)
            else:
                raise ConfigurationError(f"Undefined variable '{name}'")
        if callable(value) and not isinstance(value, type):
            value = value()
        return value

    def _expand_text(self, text: str) -> Any:
        refs = list(_REFERENCE.finditer(text))
        if not refs:
            return text

        # a lone reference keeps the type of the value (lists, ints, bools)
        first = refs[0]
        if len(refs) == 1 and not first.group(1) and first.span() == (0, len(text)):
            return self.lookup(first.group(2).strip())

        def _sub(m: re.Match[str]) -> str:
            if m.group(1):
                return m.group(0)[1:]
            return str(self.lookup(m.group(2).strip()))

        return _REFERENCE.sub(_sub, text)

    def expand(self, value: Any) -> Any:
        """Expand references in a string, or in every string of nested lists and dicts."""
        if isinstance(value, str):
            return self._expand_text(value)
        if isinstance(value, dict):
            return {k: self.expand(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.expand(item) for item in value]
        return value

    def text(self, value: str) -> str:
        return str(self.expand(value))

    def argv(self, args: Sequence[str]) -> list[str]:
        """Expand a list-form command line.

        An argument that is a lone reference to a list contributes one
        argument per item, e.g. ``["rsync", "${results.build}", "/dest"]``.
        """
        expanded: list[str] = []
        for arg in args:
            value = self.expand(arg)
            if isinstance(value, list):
                expanded.extend(str(item) for item in value)
            else:
                expanded.append(str(value))
        return expanded
