"""
Issue Mapping Model
===================
Pydantic model for the persisted association between a test identifier and
its ticket. Serialized with camelCase keys so the JSON store stays readable by
the JS reporter that shares the same file.

Fields:
    issue_number  - tracker-assigned number
    status        - "open" or "closed"
    last_failure  - ISO timestamp of the most recent failing observation
    last_update   - ISO timestamp of the most recent mutation
    fixed_by      - author of the commit that closed the ticket
    fix_commit    - SHA of that commit
    fix_message   - subject line of that commit
    test_file_path, test_name - denormalized for humans reading the store
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

IssueStatus = Literal["open", "closed"]


def utc_now() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IssueMapping(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    issue_number: int
    status: IssueStatus
    last_failure: str
    last_update: str
    fixed_by: Optional[str] = None
    fix_commit: Optional[str] = None
    fix_message: Optional[str] = None
    test_file_path: str = ""
    test_name: str = ""

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
