"""
Bug Info Model
==============
Backend-neutral view of a ticket. The GitHub tracker projects it from an
IssueMapping; the file tracker stores it as-is, one JSON file per ticket.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tickettrail.models.issue_mapping import IssueMapping, IssueStatus


class BugInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    status: IssueStatus
    test_identifier: str
    test_file_path: str = ""
    test_name: str = ""
    last_failure: str
    last_update: str
    fixed_by: Optional[str] = None
    fix_commit: Optional[str] = None
    fix_message: Optional[str] = None

    @classmethod
    def from_mapping(cls, test_id: str, mapping: IssueMapping) -> "BugInfo":
        return cls(
            id=str(mapping.issue_number),
            status=mapping.status,
            test_identifier=test_id,
            test_file_path=mapping.test_file_path,
            test_name=mapping.test_name,
            last_failure=mapping.last_failure,
            last_update=mapping.last_update,
            fixed_by=mapping.fixed_by,
            fix_commit=mapping.fix_commit,
            fix_message=mapping.fix_message,
        )

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
