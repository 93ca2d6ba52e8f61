"""Session report: per-target outcome table for a build run."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .commands import CommandResult
from .targets import TargetStatus

_DIAGNOSTIC_LINES = 5


class CommandRecord(BaseModel):
    """What ran, how it exited, and the tail of its output."""

    command: str
    exit_code: int
    skipped: bool = False
    duration: float = 0.0
    output: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CommandResult) -> CommandRecord:
        return cls(
            command=str(result.command),
            exit_code=result.exit_code,
            skipped=result.skipped,
            duration=result.duration,
            output=[] if result.ok else result.tail(_DIAGNOSTIC_LINES),
        )

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class SubResult(BaseModel):
    """Outcome of one fan-out key of a parallel target."""

    key: str
    status: TargetStatus
    duration: float = 0.0
    messages: list[str] = Field(default_factory=list)
    commands: list[CommandRecord] = Field(default_factory=list)


class TargetRecord(BaseModel):
    """Outcome of one target in a run."""

    name: str
    status: TargetStatus
    started: datetime | None = None
    duration: float = 0.0
    reason: str = ""
    messages: list[str] = Field(default_factory=list)
    commands: list[CommandRecord] = Field(default_factory=list)
    sub_results: dict[str, SubResult] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status in (TargetStatus.SUCCEEDED, TargetStatus.SKIPPED)

    def diagnostics(self) -> list[str]:
        """Key lines explaining a failure."""
        if self.ok:
            return []
        lines: list[str] = []
        if self.reason:
            lines.append(self.reason)
        lines.extend(self.messages)
        for cmd in self.commands:
            if not cmd.ok:
                lines.append(f"$ {cmd.command} (exit {cmd.exit_code})")
                lines.extend(f"  {line}" for line in cmd.output)
        for sub in self.sub_results.values():
            if sub.status == TargetStatus.FAILED:
                lines.append(f"[{sub.key}] failed")
                lines.extend(f"  [{sub.key}] {msg}" for msg in sub.messages)
                for cmd in sub.commands:
                    if not cmd.ok:
                        lines.append(f"  [{sub.key}] $ {cmd.command} (exit {cmd.exit_code})")
                        lines.extend(f"    {line}" for line in cmd.output)
        return lines


class RunReport(BaseModel):
    """Every target that ran or was attempted, in execution order."""

    builder: str
    goals: list[str] = Field(default_factory=list)
    title: str = ""
    records: list[TargetRecord] = Field(default_factory=list)
    aborted: str | None = None

    @property
    def status(self) -> TargetStatus:
        if self.aborted is not None:
            return TargetStatus.FAILED
        if all(record.ok for record in self.records):
            return TargetStatus.SUCCEEDED
        return TargetStatus.FAILED

    @property
    def ok(self) -> bool:
        return self.status == TargetStatus.SUCCEEDED

    def __getitem__(self, name: str) -> TargetRecord:
        for record in self.records:
            if record.name == name:
                return record
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(record.name == name for record in self.records)

    def render(self) -> str:
        """Format the report as a human-readable summary."""
        title = self.title or f"Report for {self.builder}"
        lines = [title, "=" * len(title)]
        if self.goals:
            lines.append(f"Goals: {', '.join(self.goals)}")
        width = max((len(r.name) for r in self.records), default=0)
        for record in self.records:
            lines.append(f"{record.name:<{width}}  {record.status.upper():<9}  {record.duration:8.2f}s")
            lines.extend(f"    {line}" for line in record.diagnostics())
        if self.aborted:
            lines.append(f"ABORTED: {self.aborted}")
        lines.append(f"Result: {self.status.upper()}")
        return "\n".join(lines)
