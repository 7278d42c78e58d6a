"""
GitHub CLI Client
=================
IssueClient that shells out to the `gh` CLI.

Commands:
    gh issue create --title T --body-file F [--label L ...]   (prints the issue URL)
    gh issue close N [--comment C]
    gh issue reopen N, then gh issue comment N --body-file F
    gh issue view N --json state
    gh --version / gh auth status                             (availability)

Commands are argument vectors, never shell strings, so titles and comments
need no quoting. Bodies go through temp files to stay clear of argv limits.
Each command is bounded by timeout_seconds; a timed-out process is killed and
reported as a failed result.
"""
import asyncio
import json
import logging
import os
import tempfile
from typing import List, Optional

from tickettrail.core.config import TRACKER_TIMEOUT
from tickettrail.core.constants import DEFAULT_LABELS, STATUS_CLOSED, STATUS_OPEN
from tickettrail.models.issue_result import IssueResult, IssueStatusResult
from tickettrail.utils.errors import format_error

logger = logging.getLogger(__name__)


class GhCommandError(Exception):
    pass


def parse_issue_number(issue_url: str) -> int:
    """Issue number from the last URL segment, 0 if it is not numeric."""
    if not issue_url:
        return 0
    last_part = issue_url.strip().rstrip("/").split("/")[-1]
    try:
        return int(last_part)
    except ValueError:
        return 0


class GitHubCliClient:
    def __init__(
        self,
        default_labels: Optional[List[str]] = None,
        timeout_seconds: float = TRACKER_TIMEOUT,
        executable: str = "gh",
    ) -> None:
        self.default_labels = list(default_labels) if default_labels is not None else list(DEFAULT_LABELS)
        self.timeout_seconds = timeout_seconds
        self.executable = executable

    async def _run_gh(self, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GhCommandError(f"{self.executable} executable not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise GhCommandError(
                f"{self.executable} {' '.join(args[:2])} timed out after {self.timeout_seconds}s"
            )

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            raise GhCommandError(f"{self.executable} {' '.join(args[:2])} failed: {detail}")
        return stdout.decode(errors="replace").strip()

    @staticmethod
    def _write_temp(prefix: str, content: str) -> str:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=".md")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    @staticmethod
    def _cleanup(path: Optional[str]) -> None:
        if path and os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                logger.debug("Could not remove temp file %s: %s", path, e)

    async def is_available(self) -> bool:
        try:
            await self._run_gh("--version")
            await self._run_gh("auth", "status")
            return True
        except GhCommandError as e:
            logger.warning("GitHub CLI not usable: %s", e)
            return False

    async def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> IssueResult:
        labels = self.default_labels if labels is None else labels
        valid_labels = [label for label in labels if label and label.strip()]
        body_file = None
        try:
            body_file = self._write_temp("issue-body-", body)
            args = ["issue", "create", "--title", title, "--body-file", body_file]
            for label in valid_labels:
                args.extend(["--label", label])
            stdout = await self._run_gh(*args)
            issue_number = parse_issue_number(stdout.splitlines()[-1] if stdout else "")
            if not issue_number:
                return IssueResult(success=False, error=f"could not parse issue number from: {stdout}")
            logger.info("Created issue #%s: %s", issue_number, title)
            return IssueResult(success=True, issue_number=issue_number)
        except (GhCommandError, OSError) as e:
            return IssueResult(success=False, error=format_error(e))
        finally:
            self._cleanup(body_file)

    async def close_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        args = ["issue", "close", str(issue_number)]
        if comment:
            args.extend(["--comment", comment])
        try:
            await self._run_gh(*args)
            logger.info("Closed issue #%s", issue_number)
            return IssueResult(success=True, issue_number=issue_number)
        except GhCommandError as e:
            return IssueResult(success=False, issue_number=issue_number, error=format_error(e))

    async def reopen_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        try:
            await self._run_gh("issue", "reopen", str(issue_number))
        except GhCommandError as e:
            return IssueResult(success=False, issue_number=issue_number, error=format_error(e))
        logger.info("Reopened issue #%s", issue_number)
        if comment:
            return await self.add_comment(issue_number, comment)
        return IssueResult(success=True, issue_number=issue_number)

    async def add_comment(self, issue_number: int, body: str) -> IssueResult:
        body_file = None
        try:
            body_file = self._write_temp("comment-body-", body)
            await self._run_gh("issue", "comment", str(issue_number), "--body-file", body_file)
            return IssueResult(success=True, issue_number=issue_number)
        except (GhCommandError, OSError) as e:
            return IssueResult(success=False, issue_number=issue_number, error=format_error(e))
        finally:
            self._cleanup(body_file)

    async def check_issue_status(self, issue_number: int) -> IssueStatusResult:
        try:
            stdout = await self._run_gh("issue", "view", str(issue_number), "--json", "state")
            state = json.loads(stdout).get("state", "")
        except (GhCommandError, ValueError, AttributeError) as e:
            return IssueStatusResult(success=False, error=format_error(e))
        status = STATUS_OPEN if str(state).upper() == "OPEN" else STATUS_CLOSED
        return IssueStatusResult(success=True, status=status)
