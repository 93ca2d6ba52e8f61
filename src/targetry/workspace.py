"""Workspace: accumulate parsed target declarations and build a Builder."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .builder import Builder
from .commands import Command, CommandRunner
from .context import Context
from .errors import ConfigurationError
from .options import BuildOptions, load_options
from .repository import Repository
from .resolve import Resolver
from .targets import CleanTarget, ParallelTarget, Target

logger = logging.getLogger(__name__)

_TARGET_KEYS = {
    "depends",
    "skip",
    "parallel",
    "clean",
    "description",
    "cwd",
    "create_cwd",
    "env",
    "shell",
    "results",
    "run",
    "valid",
}


@dataclass
class ValidStep:
    """A validation command with the messages reported for it."""

    command: str | list[str]
    fail_msg: str | None = None
    success_msg: str | None = None


@dataclass
class CommandAction:
    """Target action built from declared commands.

    ``${...}`` references are expanded when the action runs, so commands can
    use the fan-out ``key``, the repository ``version`` and other targets'
    ``results``.
    """

    run: list[str | list[str]] = field(default_factory=list)
    valid: list[ValidStep] = field(default_factory=list)
    cwd: str | None = None
    create_cwd: bool = False
    env: dict[str, str] = field(default_factory=dict)
    shell: bool = False

    def _command(self, resolver: Resolver, line: str | list[str]) -> Command:
        if isinstance(line, str):
            return Command.parse(resolver.text(line), shell=self.shell)
        return Command.parse(resolver.argv(line))

    def __call__(self, ctx: Context) -> bool:
        resolver = Resolver(ctx.variables())
        cwd = resolver.text(self.cwd) if self.cwd else None
        env = {k: resolver.text(str(v)) for k, v in self.env.items()}
        if cwd and self.create_cwd:
            if ctx.dry_run:
                logger.info("[DRY RUN] Would create %s", cwd)
            else:
                Path(cwd).mkdir(parents=True, exist_ok=True)

        for line in self.run:
            ctx.run(self._command(resolver, line), cwd=cwd, env=env)

        ok = True
        for step in self.valid:
            passed = ctx.valid(
                self._command(resolver, step.command),
                fail_msg=resolver.text(step.fail_msg) if step.fail_msg else None,
                success_msg=resolver.text(step.success_msg) if step.success_msg else None,
                cwd=cwd,
                env=env,
            )
            ok = ok and passed
        return ok


def _valid_steps(name: str, items: list[Any]) -> list[ValidStep]:
    steps: list[ValidStep] = []
    for item in items:
        if isinstance(item, (str, list)):
            steps.append(ValidStep(command=item))
        elif isinstance(item, dict) and "command" in item:
            steps.append(
                ValidStep(
                    command=item["command"],
                    fail_msg=item.get("fail_msg"),
                    success_msg=item.get("success_msg"),
                )
            )
        else:
            raise ConfigurationError(f"Invalid validation step: {item!r}", target=name)
    return steps


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_keys(value: Any) -> list[str]:
    """Fan-out keys from a list or a comma-separated string."""
    if isinstance(value, str):
        return [key.strip() for key in value.split(",") if key.strip()]
    return [str(key) for key in value]


@dataclass
class TargetRef:
    """A target declaration waiting to be turned into a Target."""

    name: str
    attrs: dict[str, Any]

    def resolve(self, resolver: Resolver) -> Target:
        unknown = set(self.attrs) - _TARGET_KEYS
        if unknown:
            raise ConfigurationError(f"Unknown target attribute(s): {sorted(unknown)}", target=self.name)

        attrs = self.attrs
        kwargs: dict[str, Any] = {
            "name": self.name,
            "description": attrs.get("description", ""),
            "skip": _as_bool(resolver.expand(attrs.get("skip", False))),
            "results": [str(r) for r in resolver.expand(list(attrs.get("results", [])))],
        }
        if "run" in attrs or "valid" in attrs:
            kwargs["action"] = CommandAction(
                run=list(attrs.get("run", [])),
                valid=_valid_steps(self.name, list(attrs.get("valid", []))),
                cwd=attrs.get("cwd"),
                create_cwd=bool(attrs.get("create_cwd", False)),
                env=dict(attrs.get("env", {})),
                shell=bool(attrs.get("shell", False)),
            )

        if "parallel" in attrs and "clean" in attrs:
            raise ConfigurationError("A target cannot be both 'parallel' and 'clean'", target=self.name)
        if "parallel" in attrs:
            logger.debug("Decoding parallel target '%s'", self.name)
            return ParallelTarget(keys=_as_keys(resolver.expand(attrs["parallel"])), **kwargs)
        if "clean" in attrs:
            logger.debug("Decoding clean target '%s'", self.name)
            paths = [str(p) for p in resolver.expand(list(attrs["clean"]))]
            return CleanTarget(paths=paths, **kwargs)
        logger.debug("Decoding target '%s'", self.name)
        return Target(**kwargs)


class Workspace(Mapping[str, TargetRef]):
    """Parsed configuration: options, builder settings and target declarations."""

    def __init__(self, context: dict[str, Any] | None = None) -> None:
        self._context = context
        self._options: dict[str, Any] = {}
        self._builders: dict[str, dict[str, Any]] = {}
        self._targets: dict[str, TargetRef] = {}

    @property
    def options(self) -> dict[str, Any]:
        return dict(self._options)

    @property
    def builders(self) -> list[str]:
        return list(self._builders)

    def load(self, data: dict[str, Any]) -> None:
        """Collect options, builder and target blocks from a parsed dict.

        Raises ConfigurationError if a name is declared twice.
        """
        for block in data.get("options", []):
            for key, value in block.items():
                if key in self._options:
                    raise ConfigurationError(f"Duplicate option: '{key}'")
                self._options[key] = value

        for block in data.get("builder", []):
            for name, attrs in block.items():
                if name in self._builders:
                    raise ConfigurationError(f"Duplicate builder: '{name}'")
                logger.debug("Found builder '%s'", name)
                self._builders[name] = dict(attrs)

        for block in data.get("target", []):
            for name, attrs in block.items():
                if name in self._targets:
                    raise ConfigurationError(f"Duplicate target: '{name}'")
                logger.debug("Found target '%s'", name)
                self._targets[name] = TargetRef(name=name, attrs=dict(attrs))

    def read(self, file: str | Path) -> None:
        """Load a single configuration file."""
        from .hcl import load

        self.load(load(Path(file), context=self._context))

    def scan(self, path: str | Path, *, recurse: bool = True) -> None:
        """Load every .hcl file under a directory, in sorted order."""
        root = Path(path)
        if root.is_file():
            self.read(root)
            return
        if not root.is_dir():
            logger.warning("Configuration path '%s' does not exist", root)
            return
        pattern = "**/*.hcl" if recurse else "*.hcl"
        for file in sorted(root.glob(pattern)):
            logger.debug("Loading %s", file)
            self.read(file)

    def builder(
        self,
        name: str | None = None,
        *,
        overrides: dict[str, Any] | None = None,
        runner: CommandRunner | None = None,
        dry_run: bool = False,
        max_workers: int | None = None,
        fail_fast: bool | None = None,
    ) -> Builder:
        """Create a Builder with every declared target wired to its dependencies."""
        if name is None:
            name = next(iter(self._builders), "build")
        elif name not in self._builders:
            raise ConfigurationError(f"Unknown builder: '{name}'")
        settings = self._builders.get(name, {})

        env = dict(os.environ)
        declared = Resolver({"env": env}).expand(self._options)
        options: BuildOptions = load_options(declared, overrides)
        resolver = Resolver({"options": options, "env": env})

        repository = None
        if "repository" in settings:
            repository = Repository(Path(options.workspace) / resolver.text(settings["repository"]))

        builder = Builder(
            name,
            options,
            runner=runner,
            repository=repository,
            max_workers=max_workers,
            fail_fast=bool(settings.get("fail_fast", False)) if fail_fast is None else fail_fast,
            on_dependency_failure=settings.get("on_dependency_failure", "failed"),
            dry_run=dry_run,
            title=resolver.text(settings.get("title", "")),
        )
        for ref in self._targets.values():
            builder.add(ref.resolve(resolver))

        for ref in self._targets.values():
            target = builder[ref.name]
            for dep_name in ref.attrs.get("depends", []):
                if dep_name not in builder:
                    raise ConfigurationError(f"Unknown dependency: '{dep_name}'", target=ref.name)
                target.dependencies.append(builder[dep_name])

        builder.default_targets = list(settings.get("default", []))
        return builder

    def __getitem__(self, name: str) -> TargetRef:
        return self._targets[name]

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __iter__(self) -> Iterator[str]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __repr__(self) -> str:
        return (
            f"Workspace(builders={len(self._builders)}, targets={len(self._targets)}, "
            f"options={len(self._options)})"
        )
