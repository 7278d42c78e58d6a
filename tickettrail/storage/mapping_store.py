"""
Mapping Store
=============
The engine's memory across runs: testIdentifier -> IssueMapping, delegated to
a StorageClient (JsonStorage unless another client is injected).

Also hands out one asyncio.Lock per identifier so a concurrent run can hold
the whole read -> reconcile -> transition sequence for a test without racing
another coroutine working on the same identifier.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from tickettrail.models.git_info import GitInfo
from tickettrail.models.issue_mapping import IssueMapping, IssueStatus
from tickettrail.storage.json_storage import JsonStorage
from tickettrail.storage.storage_client import StorageClient

logger = logging.getLogger(__name__)


class MappingStore:
    def __init__(
        self,
        database_path: Optional[str] = None,
        storage_client: Optional[StorageClient] = None,
    ) -> None:
        if storage_client is None and not database_path:
            raise ValueError("MappingStore needs a database_path or a storage_client")
        self.client: StorageClient = storage_client or JsonStorage(database_path)
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, test_id: str) -> asyncio.Lock:
        lock = self._locks.get(test_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[test_id] = lock
        return lock

    def get_mapping(self, test_id: str) -> Optional[IssueMapping]:
        return self.client.get_mapping(test_id)

    def get_issue_mapping(self, test_id: str) -> Optional[IssueMapping]:
        """Alias of get_mapping."""
        return self.get_mapping(test_id)

    def set_mapping(
        self,
        test_id: str,
        issue_number: int,
        status: IssueStatus,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> None:
        self.client.set_mapping(test_id, issue_number, status, git_info, file_path, test_name)

    def update_mapping(
        self,
        test_id: str,
        updates: dict,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> bool:
        """Merge updates into an existing mapping. Returns False if there is none."""
        if self.client.get_mapping(test_id) is None:
            return False
        self.client.update_mapping(test_id, updates, git_info, file_path, test_name)
        return True

    def update_issue_status(self, test_id: str, status: IssueStatus) -> bool:
        """Overwrite status only. Provenance fields are left untouched."""
        return self.update_mapping(test_id, {"status": status})

    def remove_mapping(self, test_id: str) -> bool:
        removed = self.client.remove_mapping(test_id)
        if removed:
            logger.info("Removed mapping for %s", test_id)
        return removed

    def get_all_mappings(self) -> Dict[str, IssueMapping]:
        return self.client.get_all_mappings()

    def get_all_mapping_entries(self) -> List[Tuple[str, IssueMapping]]:
        return list(self.get_all_mappings().items())
