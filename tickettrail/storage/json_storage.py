"""
JSON Storage
============
StorageClient backed by one pretty-printed JSON object on disk:

    { "<testIdentifier>": { "issueNumber": 12, "status": "open", ... }, ... }

Every mutation rewrites the whole file (temp file + os.replace). There is no
batching and no write-ahead log. The legacy {"testIdentifiers": {...}} wrapper
is accepted on read and dropped on the next write.

Provenance rules:
    set_mapping     - lastFailure is reset when status is open; fixedBy,
                      fixCommit and fixMessage are (re)captured only when
                      status is closed, otherwise carried over
    update_mapping  - provenance is captured only on an open -> closed merge
                      with git_info supplied; closed -> open never clears it
"""
import json
import logging
import os
import threading
from typing import Dict, Optional

from pydantic import ValidationError

from tickettrail.core.constants import STATUS_CLOSED, STATUS_OPEN, UNKNOWN
from tickettrail.models.git_info import GitInfo
from tickettrail.models.issue_mapping import IssueMapping, IssueStatus, utc_now

logger = logging.getLogger(__name__)

LEGACY_ROOT_KEY = "testIdentifiers"


class JsonStorage:
    def __init__(self, database_path: str, logger: Optional[logging.Logger] = None) -> None:
        self.database_path = database_path
        self.logger = logger or logging.getLogger(__name__)
        self._write_lock = threading.Lock()
        self._mappings: Dict[str, IssueMapping] = self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> Dict[str, IssueMapping]:
        if not os.path.exists(self.database_path):
            return {}
        try:
            with open(self.database_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning("Could not read mapping store %s, starting empty: %s", self.database_path, e)
            return {}

        if not isinstance(raw, dict):
            self.logger.warning("Mapping store %s is not a JSON object, starting empty", self.database_path)
            return {}
        if isinstance(raw.get(LEGACY_ROOT_KEY), dict):
            raw = raw[LEGACY_ROOT_KEY]

        mappings: Dict[str, IssueMapping] = {}
        for test_id, record in raw.items():
            try:
                mappings[test_id] = IssueMapping.model_validate(record)
            except ValidationError as e:
                self.logger.warning("Skipping malformed mapping %s: %s", test_id, e)
        return mappings

    def _save(self) -> None:
        payload = {test_id: m.to_record() for test_id, m in self._mappings.items()}
        tmp_path = f"{self.database_path}.tmp"
        with self._write_lock:
            try:
                directory = os.path.dirname(os.path.abspath(self.database_path))
                os.makedirs(directory, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_path, self.database_path)
            except (OSError, TypeError, ValueError) as e:
                self.logger.error("Failed to write mapping store %s: %s", self.database_path, e)

    # ------------------------------------------------------------------
    # StorageClient
    # ------------------------------------------------------------------

    def get_mapping(self, test_id: str) -> Optional[IssueMapping]:
        return self._mappings.get(test_id)

    def set_mapping(
        self,
        test_id: str,
        issue_number: int,
        status: IssueStatus,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> None:
        """Create or fully overwrite the mapping for test_id."""
        now = utc_now()
        git_info = git_info or GitInfo()
        existing = self._mappings.get(test_id)

        if status == STATUS_CLOSED:
            fixed_by = git_info.author or UNKNOWN
            fix_commit = git_info.commit or UNKNOWN
            fix_message = git_info.message or ""
        else:
            fixed_by = existing.fixed_by if existing else None
            fix_commit = existing.fix_commit if existing else None
            fix_message = existing.fix_message if existing else None

        if status == STATUS_OPEN or existing is None:
            last_failure = now
        else:
            last_failure = existing.last_failure

        self._mappings[test_id] = IssueMapping(
            issue_number=issue_number,
            status=status,
            last_failure=last_failure,
            last_update=now,
            fixed_by=fixed_by,
            fix_commit=fix_commit,
            fix_message=fix_message,
            test_file_path=file_path or (existing.test_file_path if existing else ""),
            test_name=test_name or (existing.test_name if existing else ""),
        )
        self._save()

    def update_mapping(
        self,
        test_id: str,
        updates: dict,
        git_info: Optional[GitInfo] = None,
        file_path: str = "",
        test_name: str = "",
    ) -> None:
        """
        Merge updates (IssueMapping field names) into an existing mapping.
        No-op when test_id has no mapping.
        """
        mapping = self._mappings.get(test_id)
        if mapping is None:
            self.logger.debug("update_mapping ignored, no mapping for %s", test_id)
            return

        extra = {}
        if git_info is not None and updates.get("status") == STATUS_CLOSED and mapping.status == STATUS_OPEN:
            extra["fixed_by"] = git_info.author or UNKNOWN
            extra["fix_commit"] = git_info.commit or UNKNOWN
            extra["fix_message"] = git_info.message or ""
        if file_path and not mapping.test_file_path:
            extra["test_file_path"] = file_path
        if test_name and not mapping.test_name:
            extra["test_name"] = test_name

        merged = {**mapping.model_dump(), **updates, **extra, "last_update": utc_now()}
        self._mappings[test_id] = IssueMapping.model_validate(merged)
        self._save()

    def remove_mapping(self, test_id: str) -> bool:
        if self._mappings.pop(test_id, None) is None:
            return False
        self._save()
        return True

    def get_all_mappings(self) -> Dict[str, IssueMapping]:
        return dict(self._mappings)
