"""Execution engine: run resolved targets in order and record outcomes."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime

from .commands import CommandRunner
from .context import Context
from .errors import BuildAborted, ConfigurationError, TargetFailure
from .report import CommandRecord, RunReport, SubResult, TargetRecord
from .targets import ParallelTarget, Target, TargetStatus

logger = logging.getLogger(__name__)

ContextFactory = Callable[[Target, threading.Event], Context]


class Executor:
    """Walk a resolved order one target at a time.

    A failed target forces its dependents to fail (or skip, depending on
    ``on_dependency_failure``) without running them; unrelated branches keep
    going unless ``fail_fast`` is set. Only a ConfigurationError aborts the
    whole run.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        max_workers: int = 1,
        fail_fast: bool = False,
        on_dependency_failure: TargetStatus = TargetStatus.FAILED,
    ) -> None:
        if on_dependency_failure not in (TargetStatus.FAILED, TargetStatus.SKIPPED):
            raise ConfigurationError(
                f"on_dependency_failure must be 'failed' or 'skipped', not '{on_dependency_failure}'"
            )
        self.runner = runner
        self.max_workers = max(1, max_workers)
        self.fail_fast = fail_fast
        self.on_dependency_failure = on_dependency_failure

    def execute(
        self,
        order: Sequence[Target],
        make_context: ContextFactory,
        report: RunReport,
    ) -> RunReport:
        broken: set[str] = set()
        for target in order:
            if self.fail_fast and broken:
                logger.info("Not starting '%s' after an earlier failure", target.name)
                continue

            failed_deps = [dep.name for dep in target.dependencies if dep.name in broken]
            if failed_deps:
                reason = f"Dependency failed: {', '.join(failed_deps)}"
                logger.error("Target '%s' not run; %s", target.name, reason)
                target.transition(self.on_dependency_failure)
                report.records.append(
                    TargetRecord(name=target.name, status=self.on_dependency_failure, reason=reason)
                )
                broken.add(target.name)
                continue

            if target.skip:
                logger.info("Skipping target '%s'", target.name)
                target.transition(TargetStatus.SKIPPED)
                report.records.append(TargetRecord(name=target.name, status=TargetStatus.SKIPPED))
                continue

            record = self._run(target, make_context, report)
            if record.status == TargetStatus.FAILED:
                broken.add(target.name)
        return report

    def _run(self, target: Target, make_context: ContextFactory, report: RunReport) -> TargetRecord:
        cancel = threading.Event()
        ctx = make_context(target, cancel)
        target.transition(TargetStatus.RUNNING)
        record = TargetRecord(name=target.name, status=TargetStatus.RUNNING, started=datetime.now())
        report.records.append(record)
        logger.info("Running target '%s'", target.name)
        start = time.monotonic()
        try:
            if isinstance(target, ParallelTarget):
                status, reason = self._fan_out(target, ctx, record, cancel)
            else:
                status, reason = self._invoke(target, ctx)
                record.messages.extend(ctx.messages + ctx.failures)
        except ConfigurationError as exc:
            logger.error("Aborting run: %s", exc)
            target.transition(TargetStatus.FAILED)
            record.status = TargetStatus.FAILED
            record.reason = str(exc)
            report.aborted = str(exc)
            raise BuildAborted(exc, report) from exc
        finally:
            record.duration = time.monotonic() - start
            record.commands.extend(CommandRecord.from_result(r) for r in ctx.commands)

        target.transition(status)
        record.status = status
        record.reason = reason
        if status == TargetStatus.FAILED:
            logger.error("Target '%s' failed after %.2fs", target.name, record.duration)
        else:
            logger.info("Target '%s' %s in %.2fs", target.name, status, record.duration)
        return record

    def _invoke(self, target: Target, ctx: Context) -> tuple[TargetStatus, str]:
        try:
            outcome = target.invoke(ctx)
        except ConfigurationError:
            raise
        except TargetFailure as exc:
            logger.error("%s: %s", ctx.label, exc)
            return TargetStatus.FAILED, str(exc)
        except Exception as exc:
            logger.exception("%s raised an unexpected error", ctx.label)
            return TargetStatus.FAILED, f"{type(exc).__name__}: {exc}"
        if outcome is False:
            return TargetStatus.FAILED, "Action reported failure"
        if ctx.failures:
            return TargetStatus.FAILED, f"{len(ctx.failures)} validation failure(s)"
        return TargetStatus.SUCCEEDED, ""

    def _run_key(self, target: Target, ctx: Context) -> SubResult:
        logger.debug("Starting %s", ctx.label)
        start = time.monotonic()
        status, reason = self._invoke(target, ctx)
        messages = ctx.messages + ctx.failures
        if reason and reason not in messages:
            messages.append(reason)
        return SubResult(
            key=ctx.key or "",
            status=status,
            duration=time.monotonic() - start,
            messages=messages,
            commands=[CommandRecord.from_result(r) for r in ctx.commands],
        )

    def _fan_out(
        self,
        target: ParallelTarget,
        ctx: Context,
        record: TargetRecord,
        cancel: threading.Event,
    ) -> tuple[TargetStatus, str]:
        """Run the action once per key and wait for every key to finish."""
        if not target.keys:
            return TargetStatus.SKIPPED, "No fan-out keys"

        workers = min(self.max_workers, len(target.keys))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"targetry-{target.name}")
        futures = {pool.submit(self._run_key, target, ctx.child(key)): key for key in target.keys}
        results: dict[str, SubResult] = {}
        fatal: ConfigurationError | None = None
        try:
            for future in as_completed(futures):
                try:
                    results[futures[future]] = future.result()
                except ConfigurationError as exc:
                    fatal = exc
                    break
        finally:
            if fatal is not None:
                cancel.set()
                pool.shutdown(wait=False, cancel_futures=True)
                self.runner.terminate_all()
            pool.shutdown(wait=True)
            record.sub_results = {key: results[key] for key in target.keys if key in results}

        if fatal is not None:
            raise fatal

        failed = [key for key in target.keys if results[key].status == TargetStatus.FAILED]
        if failed:
            return TargetStatus.FAILED, f"Failed for: {', '.join(failed)}"
        return TargetStatus.SUCCEEDED, ""
