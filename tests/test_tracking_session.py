"""
Tracking Session Tests
======================
Initialization failure disables tracking for the run; process() never raises.
Overlapping runs on one session never open the same issue twice.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

from tickettrail.core.config import TrackerSettings
from tickettrail.engine.reconciler import ReconciliationEngine
from tickettrail.models.git_info import GitInfo
from tickettrail.models.issue_result import IssueResult, IssueStatusResult
from tickettrail.models.test_result import CaseResult, FileResult
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.services.tracking_session import TrackingSession
from tickettrail.storage.mapping_store import MappingStore
from tickettrail.templates.renderer import MarkdownTemplateRenderer
from tickettrail.trackers.github_tracker import GitHubBugTracker
from tickettrail.utils.errors import TrackerUnavailableError
from tickettrail.utils.test_identifier import identifier_for


def make_engine(initialize=None, process=None):
    engine = MagicMock()
    engine.tracker.initialize = initialize or AsyncMock()
    engine.process_test_results = process or AsyncMock()
    return engine


def test_unavailable_tracker_disables_tracking_once():
    async def run_test():
        engine = make_engine(initialize=AsyncMock(side_effect=TrackerUnavailableError("gh not authenticated")))
        session = TrackingSession(engine)

        assert await session.process([]) is False
        assert await session.process([]) is False

        engine.tracker.initialize.assert_awaited_once()
        engine.process_test_results.assert_not_awaited()
        assert session.available is False
        assert session.last_error == "gh not authenticated"

    asyncio.run(run_test())


def test_available_tracker_processes_batches():
    async def run_test():
        engine = make_engine()
        session = TrackingSession(engine)
        assert await session.start() is True
        assert await session.process(["batch"], None) is True
        engine.process_test_results.assert_awaited_once_with(["batch"], None)

    asyncio.run(run_test())


def test_unexpected_engine_error_does_not_escape():
    async def run_test():
        engine = make_engine(process=AsyncMock(side_effect=ValueError("bad payload")))
        session = TrackingSession(engine)
        assert await session.process([{"nope": 1}]) is False
        assert session.available is True

    asyncio.run(run_test())


# ===================================================================
# Overlapping runs
# ===================================================================
class SlowIssueClient:
    """Issue client whose create round-trip is slow enough for runs to interleave."""

    def __init__(self):
        self.created = 0

    async def is_available(self):
        return True

    async def create_issue(self, title, body, labels=None):
        await asyncio.sleep(0.05)
        self.created += 1
        return IssueResult(success=True, issue_number=self.created)

    async def add_comment(self, issue_number, body):
        return IssueResult(success=True, issue_number=issue_number)

    async def check_issue_status(self, issue_number):
        return IssueStatusResult(success=True, status="open")

    async def close_issue(self, issue_number, comment=""):
        return IssueResult(success=True, issue_number=issue_number)

    async def reopen_issue(self, issue_number, comment=""):
        return IssueResult(success=True, issue_number=issue_number)


def test_overlapping_runs_create_one_issue(tmp_path):
    async def run_test():
        client = SlowIssueClient()
        store = MappingStore(str(tmp_path / "mapping.json"))
        policy = PolicyFilter(branch_resolver=lambda: "main")
        renderer = MarkdownTemplateRenderer(
            policy, git_info_provider=lambda: GitInfo(author="Dana", commit="abc123", branch="main")
        )
        tracker = GitHubBugTracker(client, renderer, store)
        engine = ReconciliationEngine(tracker, policy, settings=TrackerSettings(generate_issues=True, track_issues=True))
        session = TrackingSession(engine)

        test = CaseResult(status="failed", full_name="Math > adds", title="adds", ancestor_titles=["Math"],
                          failure_messages=["Error: boom"])
        run = [FileResult(test_file_path="src/math.test.ts", test_results=[test])]

        results = await asyncio.gather(session.process(run), session.process(run))

        assert results == [True, True]
        assert client.created == 1
        assert store.get_mapping(identifier_for("src/math.test.ts", test)).issue_number == 1

    asyncio.run(run_test())
