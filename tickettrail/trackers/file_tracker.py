"""
File Bug Tracker
================
Tickets are local files, for repositories without GitHub access:

    {bugs_dir}/{testIdentifier}.json   - the BugInfo record (camelCase keys)
    {bugs_dir}/{testIdentifier}.md     - rendered issue body, followed by every
                                         close/reopen comment, appended in order

Ticket ids are millisecond timestamps, bumped when two tickets are created in
the same millisecond. All records are loaded into memory by initialize();
files that cannot be parsed are skipped with a warning.
"""
import asyncio
import json
import logging
import os
import threading
import time
from typing import Dict, Optional

from pydantic import ValidationError

from tickettrail.core.constants import STATUS_CLOSED, STATUS_OPEN
from tickettrail.models.bug_info import BugInfo
from tickettrail.models.issue_mapping import utc_now
from tickettrail.models.test_result import CaseResult
from tickettrail.templates.renderer import TemplateRenderer
from tickettrail.trackers.base import BugTracker
from tickettrail.utils.errors import TrackerConsistencyError, TrackerOperationError, TrackerUnavailableError
from tickettrail.utils.test_identifier import describe

logger = logging.getLogger(__name__)

COMMENT_SEPARATOR = "\n\n---\n\n"


class FileBugTracker(BugTracker):
    def __init__(self, bugs_dir: str, renderer: TemplateRenderer, logger: Optional[logging.Logger] = None) -> None:
        super().__init__(renderer, logger)
        self.bugs_dir = bugs_dir
        self._bugs: Dict[str, BugInfo] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._write_lock = threading.Lock()
        self._last_id = 0

    async def initialize(self) -> None:
        try:
            os.makedirs(self.bugs_dir, exist_ok=True)
        except OSError as e:
            raise TrackerUnavailableError(f"Cannot create bugs directory {self.bugs_dir}: {e}") from e
        self._load_bugs()

    def lock_for(self, test_id: str) -> asyncio.Lock:
        lock = self._locks.get(test_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[test_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _bug_file(self, test_id: str) -> str:
        return os.path.join(self.bugs_dir, f"{test_id}.json")

    def _text_file(self, test_id: str) -> str:
        return os.path.join(self.bugs_dir, f"{test_id}.md")

    def _load_bugs(self) -> None:
        self._bugs = {}
        for name in sorted(os.listdir(self.bugs_dir)):
            if not name.endswith(".json"):
                continue
            path = os.path.join(self.bugs_dir, name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    bug = BugInfo.model_validate(json.load(f))
            except (OSError, ValueError, ValidationError) as e:
                self.logger.warning("Skipping unreadable bug file %s: %s", path, e)
                continue
            self._bugs[bug.test_identifier] = bug
        self.logger.info("Loaded %d bug(s) from %s", len(self._bugs), self.bugs_dir)

    def _save_bug(self, bug: BugInfo, text: Optional[str] = None) -> None:
        """Write the record (and append text) before touching the in-memory copy."""
        with self._write_lock:
            try:
                tmp_path = f"{self._bug_file(bug.test_identifier)}.tmp"
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(bug.to_record(), f, indent=2)
                os.replace(tmp_path, self._bug_file(bug.test_identifier))
                if text:
                    text_path = self._text_file(bug.test_identifier)
                    prefix = COMMENT_SEPARATOR if os.path.exists(text_path) else ""
                    with open(text_path, "a", encoding="utf-8") as f:
                        f.write(prefix + text)
            except OSError as e:
                raise TrackerOperationError(f"Failed to write bug {bug.id}: {e}") from e
        self._bugs[bug.test_identifier] = bug

    def _next_id(self) -> str:
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def _require_bug(self, test_id: str) -> BugInfo:
        bug = self._bugs.get(test_id)
        if bug is None:
            raise TrackerConsistencyError(f"No bug found for test: {test_id}")
        return bug

    # ------------------------------------------------------------------
    # BugTracker
    # ------------------------------------------------------------------

    async def bug_exists(self, test_id: str) -> bool:
        return test_id in self._bugs

    async def get_bug(self, test_id: str) -> Optional[BugInfo]:
        return self._bugs.get(test_id)

    async def get_all_bugs(self) -> Dict[str, BugInfo]:
        return dict(self._bugs)

    async def create_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        body = await self.renderer.generate_issue_body(test, file_path)
        now = utc_now()
        bug = BugInfo(
            id=self._next_id(),
            status=STATUS_OPEN,
            test_identifier=test_id,
            test_file_path=file_path,
            test_name=describe(test),
            last_failure=now,
            last_update=now,
        )
        self._save_bug(bug, body)
        self.logger.info("Created bug %s for %s", bug.id, bug.test_name)
        return bug

    async def close_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        bug = self._require_bug(test_id)
        comment = await self.renderer.generate_comment_body(test, file_path)
        git_info = self.renderer.get_git_info()
        closed = bug.model_copy(update={
            "status": STATUS_CLOSED,
            "last_update": utc_now(),
            "fixed_by": git_info.author,
            "fix_commit": git_info.commit,
            "fix_message": git_info.message,
        })
        self._save_bug(closed, comment)
        self.logger.info("Closed bug %s", closed.id)
        return closed

    async def reopen_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        bug = self._require_bug(test_id)
        comment = await self.renderer.generate_reopen_body(test, file_path)
        now = utc_now()
        reopened = bug.model_copy(update={"status": STATUS_OPEN, "last_failure": now, "last_update": now})
        self._save_bug(reopened, comment)
        self.logger.info("Reopened bug %s", reopened.id)
        return reopened

    async def update_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        bug = self._require_bug(test_id)
        updated = bug.model_copy(update={
            "last_failure": utc_now(),
            "test_file_path": file_path,
            "test_name": describe(test),
        })
        self._save_bug(updated)
        return updated
