"""
Hook Manager Tests
==================
Priority ordering, left-to-right composition and failure isolation of
template-data hooks, plus the bundled CoverageHook.
"""
import asyncio
import json
from unittest.mock import MagicMock

from tickettrail.hooks.coverage_hook import CoverageHook
from tickettrail.hooks.hook_manager import HookManager, TemplateDataHook
from tickettrail.models.test_result import CaseResult

TEST = CaseResult(status="failed", full_name="S > t", title="t", ancestor_titles=["S"])


class OrderHook(TemplateDataHook):
    def __init__(self, name, priority):
        self.name = name
        self.priority = priority

    async def process_issue_data(self, data, test, file_path):
        return {**data, "order": data.get("order", []) + [self.priority]}

    def process_close_data(self, data, test, file_path):
        return {**data, "closed_by": self.name}


class BrokenHook(TemplateDataHook):
    name = "Broken"
    priority = 3

    async def process_issue_data(self, data, test, file_path):
        raise ValueError("boom")


class NotADictHook(TemplateDataHook):
    name = "NotADict"
    priority = 4

    async def process_issue_data(self, data, test, file_path):
        return None


# ===================================================================
# Ordering
# ===================================================================
def test_hooks_sorted_by_priority_after_each_registration():
    manager = HookManager()
    for priority in (10, 5, 1):
        manager.register_hook(OrderHook(f"h{priority}", priority))
    assert [h.priority for h in manager.get_hooks()] == [1, 5, 10]


def test_equal_priorities_keep_registration_order():
    manager = HookManager([OrderHook("first", 5), OrderHook("second", 5)])
    assert [h.name for h in manager.get_hooks()] == ["first", "second"]


def test_issue_data_composed_left_to_right():
    async def run_test():
        manager = HookManager([OrderHook("a", 10), OrderHook("b", 5), OrderHook("c", 1)])
        data = await manager.process_issue_data({"base": True}, TEST, "src/a.test.ts")
        assert data == {"base": True, "order": [1, 5, 10]}

    asyncio.run(run_test())


def test_sync_hook_methods_are_supported():
    async def run_test():
        manager = HookManager([OrderHook("a", 2), OrderHook("b", 1)])
        data = await manager.process_close_data({}, TEST, "f.ts")
        assert data["closed_by"] == "a"

    asyncio.run(run_test())


def test_missing_methods_are_skipped():
    async def run_test():
        manager = HookManager([OrderHook("a", 1)])
        data = await manager.process_reopen_data({"x": 1}, TEST, "f.ts")
        assert data == {"x": 1}

    asyncio.run(run_test())


# ===================================================================
# Failure isolation
# ===================================================================
def test_failing_hook_does_not_stop_the_pipeline():
    async def run_test():
        log = MagicMock()
        manager = HookManager([OrderHook("a", 1), BrokenHook(), NotADictHook(), OrderHook("b", 5)], logger=log)
        data = await manager.process_issue_data({}, TEST, "f.ts")
        assert data["order"] == [1, 5]
        assert log.error.called
        assert log.warning.called

    asyncio.run(run_test())


def test_input_data_is_not_mutated():
    async def run_test():
        original = {"order": []}
        await HookManager([OrderHook("a", 1)]).process_issue_data(original, TEST, "f.ts")
        assert original == {"order": []}

    asyncio.run(run_test())


# ===================================================================
# CoverageHook
# ===================================================================
def test_coverage_hook_reads_istanbul_summary(tmp_path):
    summary = tmp_path / "coverage-summary.json"
    summary.write_text(json.dumps({
        "total": {"lines": {"pct": 80}},
        "/ci/repo/src/math.ts": {
            "statements": {"pct": 85}, "branches": {"pct": 70},
            "functions": {"pct": 90}, "lines": {"pct": 84},
        },
    }), encoding="utf-8")
    hook = CoverageHook(str(summary))
    assert hook.get_coverage_for_file("src/math.ts") == {
        "statements": 85, "branches": 70, "functions": 90, "lines": 84,
    }


def test_coverage_hook_adds_coverage_to_every_document():
    async def run_test():
        hook = CoverageHook(coverage_data={"src/example.ts": {"statements": 85, "branches": 70, "functions": 90, "lines": 85}})
        manager = HookManager([hook])
        issue = await manager.process_issue_data({}, TEST, "/repo/src/example.ts")
        close = await manager.process_close_data({}, TEST, "src/other.ts")
        reopen = await manager.process_reopen_data({}, TEST, "src/example.ts")
        assert issue["coverage"]["statements"] == 85
        assert close["coverage"] == {"statements": 0, "branches": 0, "functions": 0, "lines": 0}
        assert reopen["coverage"]["lines"] == 85
        assert hook.priority == 10

    asyncio.run(run_test())


def test_coverage_hook_without_file_reports_zero():
    assert CoverageHook("does-not-exist.json").get_coverage_for_file("a.ts")["lines"] == 0
