"""
Export Writer Tests
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from tickettrail.models.bug_info import BugInfo
from tickettrail.services.export_writer import ExportWriter


def make_tracker():
    tracker = MagicMock()
    tracker.get_all_bugs = AsyncMock(return_value={
        "a": BugInfo(id="1", status="open", test_identifier="a", last_failure="t", last_update="t"),
        "b": BugInfo(id="2", status="closed", test_identifier="b", last_failure="t", last_update="t",
                     fixed_by="Dana", fix_commit="abc123", fix_message="fix"),
    })
    return tracker


def test_snapshot_written_with_summary(tmp_path):
    async def run_test():
        output = tmp_path / "out" / "snapshot.json"
        assert await ExportWriter.write_snapshot(make_tracker(), str(output)) is True
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["summary"] == {"total": 2, "open": 1, "closed": 1}
        assert data["bugs"]["b"]["fixedBy"] == "Dana"
        assert "fixedBy" not in data["bugs"]["a"]

    asyncio.run(run_test())


def test_snapshot_failure_returns_false(tmp_path):
    async def run_test():
        tracker = MagicMock()
        tracker.get_all_bugs = AsyncMock(side_effect=OSError("gone"))
        assert await ExportWriter.write_snapshot(tracker, str(tmp_path / "x.json")) is False

    asyncio.run(run_test())
