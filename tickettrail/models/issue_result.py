"""
Issue Result Models
===================
Result shapes returned by every tracker transport. Transports report
tracker-side failures through these objects rather than by raising.
"""
from typing import Optional

from pydantic import BaseModel

from tickettrail.models.issue_mapping import IssueStatus


class IssueResult(BaseModel):
    success: bool
    issue_number: Optional[int] = None
    error: Optional[str] = None


class IssueStatusResult(BaseModel):
    success: bool
    status: Optional[IssueStatus] = None
    error: Optional[str] = None
