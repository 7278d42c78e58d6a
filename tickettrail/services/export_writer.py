"""
Export Writer
=============
Dumps the tracker's full ticket snapshot to a JSON file for diagnostics.
"""
import json
import logging
import os
from datetime import datetime, timezone

from tickettrail.trackers.base import BugTracker

logger = logging.getLogger(__name__)


class ExportWriter:
    @staticmethod
    async def build_snapshot(tracker: BugTracker) -> dict:
        bugs = await tracker.get_all_bugs()
        open_count = sum(1 for bug in bugs.values() if bug.status == "open")
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": {
                "total": len(bugs),
                "open": open_count,
                "closed": len(bugs) - open_count,
            },
            "bugs": {test_id: bug.to_record() for test_id, bug in bugs.items()},
        }

    @staticmethod
    async def write_snapshot(tracker: BugTracker, output_path: str = "tickettrail-snapshot.json") -> bool:
        """Write the snapshot. Returns False (and logs) on failure."""
        try:
            data = await ExportWriter.build_snapshot(tracker)
            abs_output = os.path.abspath(output_path)
            os.makedirs(os.path.dirname(abs_output), exist_ok=True)
            logger.info("Writing bug snapshot to %s", abs_output)
            with open(abs_output, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            return True
        except Exception as e:
            logger.error("Failed to write bug snapshot: %s", e, exc_info=True)
            return False
