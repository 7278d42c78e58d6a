"""
GitHub REST Client
==================
IssueClient that talks to https://api.github.com/repos/{owner}/{repo}/issues
with httpx. Used where the gh CLI is not installed (containers, other CI
providers). Needs a token with issues:write on the repository.

Close and reopen are two calls: PATCH the state, then POST the comment. A
failed comment after a successful state change is logged and does not turn
the result into a failure; the state change is what the mapping records.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from tickettrail.core.config import TRACKER_TIMEOUT
from tickettrail.core.constants import STATUS_CLOSED, STATUS_OPEN
from tickettrail.models.issue_result import IssueResult, IssueStatusResult
from tickettrail.utils.errors import ConfigurationError, format_error

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubRestClient:
    def __init__(
        self,
        token: str,
        repo: str,
        base_url: str = GITHUB_API_URL,
        timeout_seconds: float = TRACKER_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token or not repo:
            raise ConfigurationError("GitHub REST client needs both a token and an owner/repo")
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
            "Content-Type": "application/json",
            "User-Agent": "tickettrail",
        }
        self._transport = transport

    @property
    def issues_url(self) -> str:
        return f"{self.base_url}/repos/{self.repo}/issues"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=self.timeout_seconds, transport=self._transport)

    @staticmethod
    def _error_text(verb: str, response: httpx.Response) -> str:
        try:
            message = response.json().get("message", response.reason_phrase)
        except (ValueError, AttributeError):
            message = response.text or response.reason_phrase
        return f"Error {verb} issue: {message} ({response.status_code})"

    async def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> httpx.Response:
        async with self._client() as client:
            return await client.request(method, url, json=payload)

    async def is_available(self) -> bool:
        return True

    async def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> IssueResult:
        payload: Dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels
        try:
            response = await self._request("POST", self.issues_url, payload)
            if not response.is_success:
                return IssueResult(success=False, error=self._error_text("creating", response))
            issue_number = response.json().get("number")
        except (httpx.HTTPError, ValueError) as e:
            return IssueResult(success=False, error=f"Error creating issue: {format_error(e)}")
        logger.info("Created issue #%s via REST: %s", issue_number, title)
        return IssueResult(success=True, issue_number=issue_number)

    async def _set_state(self, issue_number: int, state: str, verb: str, comment: str) -> IssueResult:
        try:
            response = await self._request("PATCH", f"{self.issues_url}/{issue_number}", {"state": state})
            if not response.is_success:
                return IssueResult(
                    success=False, issue_number=issue_number, error=self._error_text(verb, response)
                )
        except httpx.HTTPError as e:
            return IssueResult(success=False, issue_number=issue_number, error=f"Error {verb} issue: {format_error(e)}")

        if comment:
            commented = await self.add_comment(issue_number, comment)
            if not commented.success:
                logger.warning("Issue #%s is %s but the comment failed: %s", issue_number, state, commented.error)
        return IssueResult(success=True, issue_number=issue_number)

    async def close_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        return await self._set_state(issue_number, STATUS_CLOSED, "closing", comment)

    async def reopen_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        return await self._set_state(issue_number, STATUS_OPEN, "reopening", comment)

    async def add_comment(self, issue_number: int, body: str) -> IssueResult:
        try:
            response = await self._request("POST", f"{self.issues_url}/{issue_number}/comments", {"body": body})
            if not response.is_success:
                return IssueResult(
                    success=False, issue_number=issue_number, error=self._error_text("commenting on", response)
                )
        except httpx.HTTPError as e:
            return IssueResult(success=False, issue_number=issue_number, error=f"Error commenting on issue: {format_error(e)}")
        return IssueResult(success=True, issue_number=issue_number)

    async def check_issue_status(self, issue_number: int) -> IssueStatusResult:
        try:
            response = await self._request("GET", f"{self.issues_url}/{issue_number}")
            if not response.is_success:
                return IssueStatusResult(success=False, error=self._error_text("checking", response))
            state = response.json().get("state")
        except (httpx.HTTPError, ValueError) as e:
            return IssueStatusResult(success=False, error=f"Error checking issue: {format_error(e)}")
        return IssueStatusResult(success=True, status=STATUS_OPEN if state == STATUS_OPEN else STATUS_CLOSED)
