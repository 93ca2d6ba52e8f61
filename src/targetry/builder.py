"""Builder: owns the target graph and runs requested goals."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any, TypeVar

from . import graph
from .commands import CommandRunner
from .context import Context
from .engine import Executor
from .errors import ConfigurationError
from .options import BuildOptions
from .report import RunReport
from .repository import Repository
from .targets import Action, Target, TargetStatus

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Target)


class Builder(Mapping[str, Target]):
    """A static graph of targets for one build session."""

    def __init__(
        self,
        name: str,
        options: BuildOptions | None = None,
        targets: Iterable[Target] = (),
        *,
        runner: CommandRunner | None = None,
        repository: Repository | None = None,
        max_workers: int | None = None,
        fail_fast: bool = False,
        on_dependency_failure: TargetStatus | str = TargetStatus.FAILED,
        dry_run: bool = False,
        title: str = "",
    ) -> None:
        self.name = name
        self.options = options if options is not None else BuildOptions()
        self.runner = runner or CommandRunner(dry_run=dry_run)
        self.repository = repository
        self.dry_run = dry_run
        self.title = title
        self.fail_fast = fail_fast
        try:
            self.on_dependency_failure = TargetStatus(on_dependency_failure)
        except ValueError:
            raise ConfigurationError(
                f"Invalid dependency failure policy: '{on_dependency_failure}'"
            ) from None
        self.max_workers = max_workers or getattr(self.options, "jobs", None) or os.cpu_count() or 1
        self._targets: dict[str, Target] = {}
        self._default_targets: list[Target] = []
        self.session_log: RunReport | None = None
        for target in targets:
            self.add(target)

    def add(self, target: T) -> T:
        """Register a target; names are unique within a builder."""
        if target.name in self._targets:
            raise ConfigurationError(f"Duplicate target: '{target.name}'")
        logger.debug("Adding target '%s'", target.name)
        self._targets[target.name] = target
        return target

    def target(self, name: str) -> Callable[[Action], Action]:
        """Attach the decorated function as the action of a registered target."""
        if name not in self._targets:
            raise ConfigurationError(f"Unknown target: '{name}'")

        def decorator(fn: Action) -> Action:
            self._targets[name].action = fn
            return fn

        return decorator

    @property
    def default_targets(self) -> list[Target]:
        return list(self._default_targets)

    @default_targets.setter
    def default_targets(self, targets: Iterable[Target | str]) -> None:
        defaults: list[Target] = []
        for item in targets:
            name = item if isinstance(item, str) else item.name
            if name not in self._targets:
                raise ConfigurationError(f"Unknown default target: '{name}'")
            defaults.append(self._targets[name])
        self._default_targets = defaults

    def _goal_names(self, goals: Iterable[str] | str | None) -> list[str]:
        if isinstance(goals, str):
            return [goals]
        if goals:
            return list(goals)
        if not self._default_targets:
            raise ConfigurationError(f"No goal given and builder '{self.name}' has no default targets")
        return [t.name for t in self._default_targets]

    def resolve(self, goals: Iterable[str] | str | None = None) -> list[Target]:
        """Targets to execute for the goals, dependencies first."""
        return graph.resolve(self._targets, self._goal_names(goals))

    def _make_context(self, target: Target, cancel: threading.Event) -> Context[BuildOptions]:
        return Context(
            target,
            self.options,
            runner=self.runner,
            targets=self._targets,
            repository=self.repository,
            builder=self.name,
            dry_run=self.dry_run,
            cancel=cancel,
        )

    def run(self, goals: Iterable[str] | str | None = None) -> RunReport:
        """Run the goals (or the default targets) and return the session report.

        Configuration problems found before execution raise
        ConfigurationError; ones found while running raise BuildAborted,
        which carries the partial report (also kept in ``session_log``).
        """
        goal_names = self._goal_names(goals)
        for target in self._targets.values():
            target.reset()
        self.runner.reset()
        order = graph.resolve(self._targets, goal_names)
        logger.info("Building %s: %s", self.name, ", ".join(t.name for t in order))

        report = RunReport(builder=self.name, goals=goal_names, title=self.title)
        self.session_log = report
        executor = Executor(
            self.runner,
            max_workers=self.max_workers,
            fail_fast=self.fail_fast,
            on_dependency_failure=self.on_dependency_failure,
        )
        executor.execute(order, self._make_context, report)
        logger.info("Build %s %s", self.name, report.status)
        return report

    def launch(self, goals: Iterable[str] | str | None = None) -> int:
        """Run and print the report; return a process exit code."""
        try:
            report = self.run(goals)
        except ConfigurationError as exc:
            logger.error("%s", exc)
            return 2
        print(report.render())
        return 0 if report.ok else 1

    def __getitem__(self, name: str) -> Target:
        return self._targets[name]

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __iter__(self) -> Iterator[str]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __repr__(self) -> str:
        defaults = [t.name for t in self._default_targets]
        return f"Builder(name={self.name!r}, targets={len(self._targets)}, defaults={defaults})"

    def describe(self) -> list[dict[str, Any]]:
        """Summaries of the registered targets, in registration order."""
        return [
            {
                "name": t.name,
                "kind": type(t).__name__,
                "depends": [dep.name for dep in t.dependencies],
                "skip": t.skip,
                "description": t.description,
            }
            for t in self._targets.values()
        ]
