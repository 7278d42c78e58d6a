"""
API Dependencies
Lazily builds the TrackingSession shared by the HTTP routes.
"""
import logging
from typing import Optional

from tickettrail.core.config import SETTINGS_FILE, load_settings
from tickettrail.services.factory import create_engine
from tickettrail.services.tracking_session import TrackingSession

logger = logging.getLogger(__name__)

_session: Optional[TrackingSession] = None


def get_session() -> TrackingSession:
    global _session
    if _session is None:
        settings = load_settings(SETTINGS_FILE)
        _session = TrackingSession(create_engine(settings))
        logger.info("Tracking session created (tracker=%s)", settings.tracker_type)
    return _session


def reset_session() -> None:
    global _session
    _session = None
