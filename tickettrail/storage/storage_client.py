"""
Storage Client
==============
Contract for the durable key/value medium behind the MappingStore.
JsonStorage is the shipped implementation; anything honouring these four
methods (and their failure semantics) can replace it.

Failure semantics:
    - reads never raise; an unreadable medium behaves as an empty store
    - writes never raise; a failed write is logged and the in-memory state
      keeps the update
"""
from typing import Dict, Optional, Protocol

from tickettrail.models.git_info import GitInfo
from tickettrail.models.issue_mapping import IssueMapping, IssueStatus


class StorageClient(Protocol):
    def get_mapping(self, test_id: str) -> Optional[IssueMapping]:
        ...

    def set_mapping(
        self,
        test_id: str,
        issue_number: int,
        status: IssueStatus,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> None:
        ...

    def update_mapping(
        self,
        test_id: str,
        updates: dict,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> None:
        ...

    def get_all_mappings(self) -> Dict[str, IssueMapping]:
        ...

    def remove_mapping(self, test_id: str) -> bool:
        ...
