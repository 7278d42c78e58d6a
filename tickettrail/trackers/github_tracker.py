"""
GitHub Bug Tracker
==================
Tickets are GitHub issues; the MappingStore caches testIdentifier -> issue.

Status reconciliation:
    get_bug() asks GitHub for the live state before answering. When it
    differs from the cached status (a human closed or reopened the issue in
    the UI), only the cached status is overwritten; provenance stays as is.
    The status check is the one call retried, with exponential backoff,
    because it is a read. If every attempt fails the cached mapping is
    returned unchanged.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from tickettrail.core.constants import DEFAULT_LABELS, ISSUE_TITLE_PREFIX, STATUS_CLOSED, STATUS_OPEN
from tickettrail.github.client_protocol import IssueClient
from tickettrail.models.bug_info import BugInfo
from tickettrail.models.issue_mapping import IssueMapping, utc_now
from tickettrail.models.issue_result import IssueStatusResult
from tickettrail.models.test_result import CaseResult
from tickettrail.storage.mapping_store import MappingStore
from tickettrail.templates.renderer import TemplateRenderer
from tickettrail.trackers.base import BugTracker
from tickettrail.utils.errors import TrackerConsistencyError, TrackerOperationError, TrackerUnavailableError
from tickettrail.utils.test_identifier import describe

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 4.0


class GitHubBugTracker(BugTracker):
    def __init__(
        self,
        client: IssueClient,
        renderer: TemplateRenderer,
        mapping_store: MappingStore,
        labels: Optional[List[str]] = None,
        status_check_retries: int = 2,
        retry_backoff_seconds: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(renderer, logger)
        self.client = client
        self.mapping_store = mapping_store
        self.labels = list(labels) if labels is not None else list(DEFAULT_LABELS)
        self.status_check_retries = max(0, status_check_retries)
        self.retry_backoff_seconds = retry_backoff_seconds

    async def initialize(self) -> None:
        if not await self.client.is_available():
            raise TrackerUnavailableError(
                "GitHub is not available. Install the gh CLI and run `gh auth login`, "
                "or configure the REST client with a token and repository."
            )

    def lock_for(self, test_id: str):
        return self.mapping_store.lock_for(test_id)

    def _require_mapping(self, test_id: str) -> IssueMapping:
        mapping = self.mapping_store.get_mapping(test_id)
        if mapping is None:
            raise TrackerConsistencyError(f"No mapping found for test: {test_id}")
        return mapping

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def bug_exists(self, test_id: str) -> bool:
        return self.mapping_store.get_mapping(test_id) is not None

    async def _check_status_with_retry(self, issue_number: int) -> IssueStatusResult:
        backoff = self.retry_backoff_seconds
        result = await self.client.check_issue_status(issue_number)
        for attempt in range(self.status_check_retries):
            if result.success:
                break
            self.logger.warning(
                "Status check for issue #%s failed (attempt %d/%d): %s",
                issue_number, attempt + 1, self.status_check_retries + 1, result.error,
            )
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, MAX_BACKOFF_SECONDS)
            result = await self.client.check_issue_status(issue_number)
        return result

    async def get_bug(self, test_id: str) -> Optional[BugInfo]:
        mapping = self.mapping_store.get_mapping(test_id)
        if mapping is None:
            return None

        result = await self._check_status_with_retry(mapping.issue_number)
        if not result.success:
            self.logger.warning(
                "Could not check live status of issue #%s, using cached status %s: %s",
                mapping.issue_number, mapping.status, result.error,
            )
        elif result.status != mapping.status:
            self.logger.info(
                "Issue #%s is %s on GitHub but cached as %s, syncing",
                mapping.issue_number, result.status, mapping.status,
            )
            self.mapping_store.update_issue_status(test_id, result.status)
            mapping = self.mapping_store.get_mapping(test_id) or mapping

        return BugInfo.from_mapping(test_id, mapping)

    async def get_all_bugs(self) -> Dict[str, BugInfo]:
        return {
            test_id: BugInfo.from_mapping(test_id, mapping)
            for test_id, mapping in self.mapping_store.get_all_mappings().items()
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        test_name = describe(test)
        title = f"{ISSUE_TITLE_PREFIX} {test_name}"
        body = await self.renderer.generate_issue_body(test, file_path)

        result = await self.client.create_issue(title, body, self.labels)
        if not result.success or not result.issue_number:
            raise TrackerOperationError(f"Failed to create issue: {result.error}")

        self.mapping_store.set_mapping(
            test_id, result.issue_number, STATUS_OPEN, self.renderer.get_git_info(), file_path, test_name
        )
        self.logger.info("Created issue #%s for %s", result.issue_number, test_name)
        return BugInfo.from_mapping(test_id, self._require_mapping(test_id))

    async def close_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        mapping = self._require_mapping(test_id)
        comment = await self.renderer.generate_comment_body(test, file_path)

        result = await self.client.close_issue(mapping.issue_number, comment)
        if not result.success:
            raise TrackerOperationError(f"Failed to close issue: {result.error}")

        self.mapping_store.update_mapping(
            test_id, {"status": STATUS_CLOSED}, self.renderer.get_git_info(), file_path, describe(test)
        )
        self.logger.info("Closed issue #%s", mapping.issue_number)
        return BugInfo.from_mapping(test_id, self._require_mapping(test_id))

    async def reopen_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        mapping = self._require_mapping(test_id)
        comment = await self.renderer.generate_reopen_body(test, file_path)

        result = await self.client.reopen_issue(mapping.issue_number, comment)
        if not result.success:
            raise TrackerOperationError(f"Failed to reopen issue: {result.error}")

        self.mapping_store.update_mapping(
            test_id, {"status": STATUS_OPEN, "last_failure": utc_now()}, None, file_path, describe(test)
        )
        self.logger.info("Reopened issue #%s", mapping.issue_number)
        return BugInfo.from_mapping(test_id, self._require_mapping(test_id))

    async def update_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        self._require_mapping(test_id)
        self.mapping_store.update_mapping(test_id, {"last_failure": utc_now()}, None, file_path, describe(test))
        return BugInfo.from_mapping(test_id, self._require_mapping(test_id))
