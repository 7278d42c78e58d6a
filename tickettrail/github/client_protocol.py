"""
Issue Client Protocol
=====================
Transport contract shared by the gh CLI client and the REST client.
Tracker-side failures come back as IssueResult(success=False, error=...);
implementations do not raise for them.
"""
from typing import List, Optional, Protocol

from tickettrail.models.issue_result import IssueResult, IssueStatusResult


class IssueClient(Protocol):
    async def is_available(self) -> bool:
        ...

    async def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> IssueResult:
        ...

    async def close_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        ...

    async def reopen_issue(self, issue_number: int, comment: str = "") -> IssueResult:
        ...

    async def check_issue_status(self, issue_number: int) -> IssueStatusResult:
        ...

    async def add_comment(self, issue_number: int, body: str) -> IssueResult:
        ...
