"""
Bug Tracker Base
================
Contract shared by the GitHub-backed and file-backed trackers.

Every mutating call renders its text through the TemplateRenderer, performs
the tracker operation and, on success, records the new state with a fresh
timestamp. A tracker-reported failure raises TrackerOperationError carrying
the tracker's message; a missing ticket raises TrackerConsistencyError. The
engine catches both.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from tickettrail.models.bug_info import BugInfo
from tickettrail.models.test_result import CaseResult
from tickettrail.templates.renderer import TemplateRenderer


class BugTracker(ABC):
    def __init__(self, renderer: TemplateRenderer, logger: Optional[logging.Logger] = None) -> None:
        self.renderer = renderer
        self.logger = logger or logging.getLogger(type(self).__module__)

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend. Raises TrackerUnavailableError if it cannot operate."""

    @abstractmethod
    async def bug_exists(self, test_id: str) -> bool:
        ...

    @abstractmethod
    async def get_bug(self, test_id: str) -> Optional[BugInfo]:
        ...

    @abstractmethod
    async def create_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        ...

    @abstractmethod
    async def close_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        ...

    @abstractmethod
    async def reopen_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        ...

    @abstractmethod
    async def update_bug(self, test_id: str, test: CaseResult, file_path: str) -> BugInfo:
        ...

    @abstractmethod
    async def get_all_bugs(self) -> Dict[str, BugInfo]:
        ...

    def lock_for(self, test_id: str):
        """Per-identifier asyncio.Lock, or None when the backend needs no serialization."""
        return None
