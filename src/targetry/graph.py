"""Target graph resolver: execution order from declared dependencies."""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable, Mapping

from .errors import ConfigurationError, CycleError
from .targets import Target

logger = logging.getLogger(__name__)


def _check_registered(targets: Mapping[str, Target], target: Target) -> None:
    for dep in target.dependencies:
        registered = targets.get(dep.name)
        if registered is None:
            raise ConfigurationError(
                f"Dependency '{dep.name}' is not a registered target", target=target.name
            )
        if registered is not dep:
            raise ConfigurationError(
                f"Dependency '{dep.name}' refers to a different target instance", target=target.name
            )


def check_acyclic(targets: Mapping[str, Target]) -> None:
    """Reject a graph whose dependency relation contains a cycle.

    The raised CycleError names the path, e.g. ``a -> b -> a``.
    """
    done: set[str] = set()
    stack: list[str] = []
    on_stack: set[str] = set()

    def _visit(target: Target) -> None:
        if target.name in done:
            return
        if target.name in on_stack:
            start = stack.index(target.name)
            raise CycleError([*stack[start:], target.name])
        _check_registered(targets, target)
        stack.append(target.name)
        on_stack.add(target.name)
        for dep in target.dependencies:
            _visit(dep)
        stack.pop()
        on_stack.discard(target.name)
        done.add(target.name)

    for target in targets.values():
        _visit(target)


def closure(targets: Mapping[str, Target], goals: Iterable[str]) -> set[str]:
    """Names of the goals and everything they transitively depend on."""
    seen: set[str] = set()
    pending: list[str] = []
    for goal in goals:
        if goal not in targets:
            raise ConfigurationError(f"Unknown target: '{goal}'")
        pending.append(goal)
    while pending:
        name = pending.pop()
        if name in seen:
            continue
        seen.add(name)
        pending.extend(dep.name for dep in targets[name].dependencies)
    return seen


def resolve(targets: Mapping[str, Target], goals: Iterable[str]) -> list[Target]:
    """Order the goals' dependency closure so dependencies come first.

    Each target appears once. Among targets that are ready at the same time,
    the one registered first in ``targets`` runs first, so the order is
    reproducible from run to run.
    """
    goals = list(goals)
    check_acyclic(targets)
    needed = closure(targets, goals)

    index = {name: i for i, name in enumerate(targets)}
    remaining: dict[str, int] = {}
    dependents: dict[str, list[str]] = {name: [] for name in needed}
    for name in needed:
        dep_names = {dep.name for dep in targets[name].dependencies}
        remaining[name] = len(dep_names)
        for dep_name in dep_names:
            dependents[dep_name].append(name)

    ready = [(index[name], name) for name, count in remaining.items() if count == 0]
    heapq.heapify(ready)
    order: list[Target] = []
    while ready:
        _, name = heapq.heappop(ready)
        order.append(targets[name])
        for child in dependents[name]:
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(ready, (index[child], child))

    logger.debug("Resolved %s -> %s", goals, [t.name for t in order])
    return order
