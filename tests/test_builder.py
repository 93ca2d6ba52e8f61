"""Tests for targetry.builder."""

from __future__ import annotations

import sys

import pytest

from targetry.builder import Builder
from targetry.errors import BuildAborted, ConfigurationError, CycleError
from targetry.options import BuildOptions
from targetry.targets import ParallelTarget, Target, TargetStatus


def _recorder(calls: list[str], name: str, result=None):
    def action(ctx):
        calls.append(name)
        return result

    return action


def _chain(calls: list[str]) -> Builder:
    b = Builder("test")
    c = b.add(Target(name="c", action=_recorder(calls, "c")))
    b_ = b.add(Target(name="b", dependencies=[c], action=_recorder(calls, "b")))
    b.add(Target(name="a", dependencies=[b_], action=_recorder(calls, "a")))
    return b


class TestBuilderConstruction:
    def test_defaults(self):
        b = Builder("gdb")
        assert b.name == "gdb"
        assert isinstance(b.options, BuildOptions)
        assert len(b) == 0
        assert b.default_targets == []
        assert b.session_log is None

    def test_targets_in_constructor(self):
        b = Builder("gdb", targets=[Target(name="a"), Target(name="b")])
        assert list(b) == ["a", "b"]
        assert "a" in b
        assert b["b"].name == "b"

    def test_add_returns_target(self):
        b = Builder("gdb")
        t = Target(name="a")
        assert b.add(t) is t

    def test_duplicate_target(self):
        b = Builder("gdb", targets=[Target(name="a")])
        with pytest.raises(ConfigurationError, match="Duplicate target"):
            b.add(Target(name="a"))

    def test_max_workers_from_options(self):
        b = Builder("gdb", BuildOptions(jobs=3))
        assert b.max_workers == 3

    def test_invalid_dependency_failure_policy(self):
        with pytest.raises(ConfigurationError, match="policy"):
            Builder("gdb", on_dependency_failure="explode")

    def test_repr(self):
        b = Builder("gdb", targets=[Target(name="a")])
        b.default_targets = ["a"]
        assert "gdb" in repr(b)
        assert "['a']" in repr(b)


class TestTargetDecorator:
    def test_attaches_action(self):
        b = Builder("gdb", targets=[Target(name="build")])

        @b.target("build")
        def build(ctx):
            return True

        assert b["build"].action is build

    def test_unknown_target(self):
        b = Builder("gdb")
        with pytest.raises(ConfigurationError, match="build"):
            b.target("build")


class TestDefaultTargets:
    def test_accepts_targets_and_names(self):
        b = Builder("gdb", targets=[Target(name="a"), Target(name="b")])
        b.default_targets = [b["a"], "b"]
        assert [t.name for t in b.default_targets] == ["a", "b"]

    def test_unknown_default(self):
        b = Builder("gdb")
        with pytest.raises(ConfigurationError, match="missing"):
            b.default_targets = ["missing"]

    def test_run_uses_defaults(self):
        calls: list[str] = []
        b = _chain(calls)
        b.default_targets = ["b"]
        report = b.run()
        assert calls == ["c", "b"]
        assert report.goals == ["b"]

    def test_no_goal_and_no_defaults(self):
        b = Builder("gdb", targets=[Target(name="a")])
        with pytest.raises(ConfigurationError, match="no default targets"):
            b.run()


class TestRun:
    def test_chain_order(self):
        calls: list[str] = []
        report = _chain(calls).run("a")
        assert calls == ["c", "b", "a"]
        assert [r.name for r in report.records] == ["c", "b", "a"]
        assert report.ok

    def test_session_log_holds_report(self):
        b = _chain([])
        report = b.run(["a"])
        assert b.session_log is report

    def test_statuses_reset_between_runs(self):
        calls: list[str] = []
        b = _chain(calls)
        b.run("a")
        b.run("a")
        assert calls == ["c", "b", "a", "c", "b", "a"]
        assert b["a"].status == TargetStatus.SUCCEEDED

    def test_fresh_builders_resolve_identically(self):
        assert [t.name for t in _chain([]).resolve("a")] == [t.name for t in _chain([]).resolve("a")]

    def test_unknown_goal_before_anything_runs(self):
        calls: list[str] = []
        b = _chain(calls)
        with pytest.raises(ConfigurationError, match="nope"):
            b.run(["a", "nope"])
        assert calls == []
        assert all(t.status == TargetStatus.PENDING for t in b.values())

    def test_cycle_rejected_before_anything_runs(self):
        calls: list[str] = []
        b = _chain(calls)
        b["c"].dependencies.append(b["a"])
        with pytest.raises(CycleError):
            b.run("a")
        assert calls == []

    def test_abort_keeps_partial_report(self):
        def explode(ctx):
            raise ConfigurationError("Gas was not built")

        b = Builder("gdb")
        first = b.add(Target(name="first"))
        b.add(Target(name="second", dependencies=[first], action=explode))
        b.add(Target(name="third"))
        with pytest.raises(BuildAborted, match="Gas was not built") as exc:
            b.run(["second", "third"])
        assert b.session_log is exc.value.report
        assert [r.name for r in exc.value.report.records] == ["first", "second"]
        assert b["third"].status == TargetStatus.PENDING


    def test_commands_allowed_again_after_abort(self):
        def build(ctx):
            ctx.run([sys.executable, "-c", "pass"])

        b = Builder("gdb", targets=[Target(name="build", action=build)])
        b.runner.terminate_all()
        report = b.run("build")
        assert report.ok
        assert report["build"].commands[0].exit_code == 0


class TestLaunch:
    def test_success_exit_code(self, capsys):
        assert _chain([]).launch("a") == 0
        assert "SUCCEEDED" in capsys.readouterr().out

    def test_failure_exit_code(self, capsys):
        b = Builder("gdb", targets=[Target(name="a", action=lambda ctx: False)])
        assert b.launch("a") == 1
        assert "FAILED" in capsys.readouterr().out

    def test_configuration_error_exit_code(self, capsys):
        assert _chain([]).launch("nope") == 2
        assert capsys.readouterr().out == ""


class TestDescribe:
    def test_lists_targets(self):
        b = Builder("gdb")
        build = b.add(ParallelTarget(name="build", keys=["x"]))
        b.add(Target(name="install", dependencies=[build], skip=True))
        info = b.describe()
        assert info[0]["kind"] == "ParallelTarget"
        assert info[1] == {
            "name": "install",
            "kind": "Target",
            "depends": ["build"],
            "skip": True,
            "description": "",
        }
