"""
Reconciliation Engine
=====================
Maps a batch of test outcomes onto ticket transitions, once per run.

State machine (per test identifier):

    current    observation  guard            action                      next
    ---------  -----------  ---------------  --------------------------  --------
    NoTicket   fail         generate_issues  create ticket               Open
    NoTicket   fail         otherwise        none                        NoTicket
    Open       fail         -                touch lastFailure           Open
    Closed     fail         reopen_issues    reopen ticket               Open
    Closed     fail         otherwise        none                        Closed
    Open       pass         close_issues     close ticket, record fix    Closed
    Open       pass         otherwise        none                        Open
    Closed     pass         -                none                        Closed
    NoTicket   pass         -                none                        NoTicket

Policy gates, checked in order before anything else (first failure wins,
nothing is touched):
    1. the test file is included
    2. the test file is not exempt from ticket creation
    3. the current branch is eligible

Create, close and reopen are bracketed by the matching before/after plugin
calls. Any exception while handling one test is logged and swallowed; the
batch always runs to the end.

Concurrency:
    max_concurrency == 1 (default) handles tests strictly one after another.
    Above that, tests fan out over a semaphore. Either way each test holds
    the tracker's per-identifier lock for its whole read -> transition
    sequence, so overlapping runs sharing one tracker never double-create.
"""
import asyncio
import logging
from typing import Iterable, Optional, Union

from tickettrail.core.config import RunOptions, TrackerSettings
from tickettrail.core.constants import STATUS_CLOSED, STATUS_OPEN
from tickettrail.models.test_result import CaseResult, FileResult
from tickettrail.plugins.plugin_manager import PluginManager
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.trackers.base import BugTracker
from tickettrail.utils.errors import format_error
from tickettrail.utils.test_identifier import identifier_for

logger = logging.getLogger(__name__)

STATUS_FAILED = "failed"
STATUS_PASSED = "passed"


class ReconciliationEngine:
    def __init__(
        self,
        tracker: BugTracker,
        policy: PolicyFilter,
        settings: Optional[TrackerSettings] = None,
        plugin_manager: Optional[PluginManager] = None,
        cwd: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.tracker = tracker
        self.policy = policy
        self.settings = settings or TrackerSettings()
        self.plugin_manager = plugin_manager or PluginManager()
        self.cwd = cwd
        self.logger = logger or logging.getLogger(__name__)
        self.max_concurrency = max(1, self.settings.max_concurrency)

    def _effective(self, options: Optional[RunOptions]) -> RunOptions:
        return (options or RunOptions()).resolve(self.settings)

    def _handle_error(self, error: Exception, prefix: str) -> None:
        self.logger.error("%s: %s", prefix, format_error(error))

    # ------------------------------------------------------------------
    # Batch entry points
    # ------------------------------------------------------------------

    async def process_test_results(
        self,
        batch: Iterable[Union[FileResult, dict]],
        options: Optional[RunOptions] = None,
    ) -> None:
        """Process every file result of one run. Never raises for per-test failures."""
        effective = self._effective(options)
        if not effective.generate_issues and not effective.track_issues:
            self.logger.debug("Issue generation and tracking both disabled, skipping batch")
            return

        file_results = [r if isinstance(r, FileResult) else FileResult.model_validate(r) for r in batch]

        # branch and git info are resolved once per run
        self.policy.reset_branch()
        self.tracker.renderer.reset_git_info()

        if self.max_concurrency == 1:
            for file_result in file_results:
                await self.process_test_file(file_result.test_file_path, file_result, effective)
            return

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(file_path: str, test: CaseResult) -> None:
            async with semaphore:
                await self._dispatch(file_path, test, effective)

        await asyncio.gather(*(
            bounded(file_result.test_file_path, test)
            for file_result in file_results
            for test in file_result.test_results
        ))

    async def process_test_file(
        self,
        file_path: str,
        file_result: Union[FileResult, dict],
        options: Optional[RunOptions] = None,
    ) -> None:
        if not isinstance(file_result, FileResult):
            file_result = FileResult.model_validate(file_result)
        for test in file_result.test_results:
            await self._dispatch(file_path, test, options)

    async def _dispatch(self, file_path: str, test: CaseResult, options: Optional[RunOptions]) -> None:
        if test.status not in (STATUS_FAILED, STATUS_PASSED):
            return
        test_id = identifier_for(file_path, test, self.cwd)
        if test.status == STATUS_FAILED:
            await self.handle_failed_test(test_id, file_path, test, options)
        else:
            await self.handle_passed_test(test_id, file_path, test, options)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _passes_gates(self, file_path: str) -> bool:
        if not self.policy.should_include_test(file_path):
            return False
        if self.policy.should_skip_issue_creation(file_path):
            return False
        return self.policy.should_create_issues_on_current_branch()

    async def _locked(self, test_id: str, handler, *args) -> None:
        lock = self.tracker.lock_for(test_id)
        if lock is None:
            await handler(*args)
            return
        async with lock:
            await handler(*args)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def handle_failed_test(
        self,
        test_id: str,
        file_path: str,
        test: CaseResult,
        options: Optional[RunOptions] = None,
    ) -> None:
        if not self._passes_gates(file_path):
            return
        try:
            await self._locked(test_id, self._on_failure, test_id, file_path, test, self._effective(options))
        except Exception as e:
            self._handle_error(e, "Failed to handle failed test")

    async def _on_failure(self, test_id: str, file_path: str, test: CaseResult, options: RunOptions) -> None:
        if await self.tracker.bug_exists(test_id):
            bug = await self.tracker.get_bug(test_id)
            if bug is None:
                self.logger.error("Bug exists but could not be retrieved for test: %s", test_id)
                return

            if bug.status == STATUS_OPEN:
                await self.tracker.update_bug(test_id, test, file_path)
            elif bug.status == STATUS_CLOSED and options.reopen_issues:
                await self.plugin_manager.before_reopen_issue(test, file_path, bug.id)
                await self.tracker.reopen_bug(test_id, test, file_path)
                await self.plugin_manager.after_reopen_issue(test, file_path, bug.id)
        elif options.generate_issues:
            await self.plugin_manager.before_create_issue(test, file_path)
            bug = await self.tracker.create_bug(test_id, test, file_path)
            await self.plugin_manager.after_create_issue(test, file_path, bug.id)

    async def handle_passed_test(
        self,
        test_id: str,
        file_path: str,
        test: CaseResult,
        options: Optional[RunOptions] = None,
    ) -> None:
        if not self._passes_gates(file_path):
            return
        try:
            await self._locked(test_id, self._on_pass, test_id, file_path, test, self._effective(options))
        except Exception as e:
            self._handle_error(e, "Failed to handle passed test")

    async def _on_pass(self, test_id: str, file_path: str, test: CaseResult, options: RunOptions) -> None:
        if not await self.tracker.bug_exists(test_id):
            return
        bug = await self.tracker.get_bug(test_id)
        if bug is None:
            self.logger.error("Bug exists but could not be retrieved for test: %s", test_id)
            return

        if bug.status == STATUS_OPEN and options.close_issues:
            await self.plugin_manager.before_close_issue(test, file_path, bug.id)
            await self.tracker.close_bug(test_id, test, file_path)
            await self.plugin_manager.after_close_issue(test, file_path, bug.id)
