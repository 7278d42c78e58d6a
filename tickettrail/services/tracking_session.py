"""
Tracking Session
================
Run-level wrapper around the engine for test-runner integrations.

    session = TrackingSession(engine)
    await session.start()            # initialize tracker once
    await session.process(batch)     # never raises

Initialization policy:
    A tracker that cannot initialize (gh missing, unauthenticated, bugs dir
    not writable) disables ticket tracking for the rest of the run with a
    single warning. Reporting test results must never fail because ticket
    tracking did.
"""
import logging
from typing import Iterable, Optional, Union

from tickettrail.core.config import RunOptions
from tickettrail.engine.reconciler import ReconciliationEngine
from tickettrail.models.test_result import FileResult
from tickettrail.utils.errors import format_error

logger = logging.getLogger(__name__)


class TrackingSession:
    def __init__(self, engine: ReconciliationEngine) -> None:
        self.engine = engine
        self.started = False
        self.available = False
        self.last_error: Optional[str] = None

    async def start(self) -> bool:
        """Initialize the tracker. Returns whether tracking is available."""
        if self.started:
            return self.available
        self.started = True
        try:
            await self.engine.tracker.initialize()
            self.available = True
        except Exception as e:
            self.available = False
            self.last_error = format_error(e)
            logger.warning("Bug tracker is not available, issue tracking disabled for this run: %s", self.last_error)
        return self.available

    async def process(
        self,
        batch: Iterable[Union[FileResult, dict]],
        options: Optional[RunOptions] = None,
    ) -> bool:
        """Process a batch. Returns False when tracking was skipped or failed."""
        if not self.started:
            await self.start()
        if not self.available:
            return False
        try:
            await self.engine.process_test_results(batch, options)
        except Exception as e:
            logger.error("Error processing test results: %s", format_error(e))
            return False
        return True
