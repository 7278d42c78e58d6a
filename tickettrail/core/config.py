"""
Configuration
=============
Loads environment variables from .env file using python-dotenv, and exposes
the single run configuration struct (TrackerSettings).

Environment Variables:
    TICKETTRAIL_TRACKER_TYPE         - "github" (default) or "file"
    TICKETTRAIL_DATABASE_PATH        - JSON mapping store path (default: test-issue-mapping.json)
    TICKETTRAIL_BUGS_DIR             - directory for the file tracker (default: bugs)
    TICKETTRAIL_USE_REST             - use the GitHub REST API instead of the gh CLI (default: false)
    GITHUB_TOKEN                     - required when TICKETTRAIL_USE_REST=true
    GITHUB_REPOSITORY                - "owner/repo", required when TICKETTRAIL_USE_REST=true
    TICKETTRAIL_TRACKER_TIMEOUT      - seconds allowed per tracker call (default: 30)
    TICKETTRAIL_STATUS_CHECK_RETRIES - extra attempts for live status checks (default: 2)
    TICKETTRAIL_MAX_CONCURRENCY      - parallel tests per run (default: 1, sequential)
    TICKETTRAIL_LOG_DIR              - log file directory (default: logs)
    TICKETTRAIL_SETTINGS_FILE        - YAML/JSON settings file read by the HTTP service

Settings Files:
    load_settings() accepts a YAML or JSON file. Keys may be snake_case or the
    camelCase spelling used by JS-side reporter configs (generateIssues,
    testFilters, ...). Explicit keyword overrides always win.

Timeout Philosophy:
    A hung gh subprocess or HTTP call must never block the run. Every tracker
    call is bounded by tracker_timeout_seconds and a timeout counts as an
    ordinary tracker-operation failure.
"""
import os
import json
import logging
from typing import List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from tickettrail.core.constants import (
    DEFAULT_BUGS_DIR,
    DEFAULT_DATABASE_PATH,
    DEFAULT_LABELS,
)

load_dotenv()

logger = logging.getLogger(__name__)

TRACKER_TYPE = os.getenv("TICKETTRAIL_TRACKER_TYPE", "github")
DATABASE_PATH = os.getenv("TICKETTRAIL_DATABASE_PATH", DEFAULT_DATABASE_PATH)
BUGS_DIR = os.getenv("TICKETTRAIL_BUGS_DIR", DEFAULT_BUGS_DIR)
USE_REST = os.getenv("TICKETTRAIL_USE_REST", "false").lower() == "true"
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_REPOSITORY = os.getenv("GITHUB_REPOSITORY")
TRACKER_TIMEOUT = float(os.getenv("TICKETTRAIL_TRACKER_TIMEOUT", 30))
STATUS_CHECK_RETRIES = int(os.getenv("TICKETTRAIL_STATUS_CHECK_RETRIES", 2))
MAX_CONCURRENCY = int(os.getenv("TICKETTRAIL_MAX_CONCURRENCY", 1))
LOG_DIR = os.getenv("TICKETTRAIL_LOG_DIR", "logs")
SETTINGS_FILE = os.getenv("TICKETTRAIL_SETTINGS_FILE")


class _SettingsModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PathFilters(_SettingsModel):
    include: List[str] = Field(default_factory=lambda: ["*"])
    exclude: List[str] = Field(default_factory=list)


class BranchFilters(_SettingsModel):
    include: List[str] = Field(default_factory=lambda: [".*"])
    exclude: List[str] = Field(default_factory=list)


class CustomTemplate(_SettingsModel):
    pattern: str
    template: str


class TemplateExceptions(_SettingsModel):
    skip_issue_creation: List[str] = Field(default_factory=list)
    custom_templates: List[CustomTemplate] = Field(default_factory=list)


class TrackerSettings(_SettingsModel):
    """Everything a run needs, resolved once before processing starts."""

    generate_issues: bool = False
    track_issues: bool = False
    close_issues: bool = True
    reopen_issues: bool = True

    tracker_type: Literal["github", "file"] = TRACKER_TYPE  # type: ignore[assignment]
    database_path: str = DATABASE_PATH
    bugs_dir: str = BUGS_DIR
    labels: List[str] = Field(default_factory=lambda: list(DEFAULT_LABELS))
    template_dir: Optional[str] = None

    github_use_rest: bool = USE_REST
    github_token: Optional[str] = GITHUB_TOKEN
    github_repo: Optional[str] = GITHUB_REPOSITORY

    test_filters: PathFilters = Field(default_factory=PathFilters)
    branch_filters: BranchFilters = Field(default_factory=BranchFilters)
    template_exceptions: TemplateExceptions = Field(default_factory=TemplateExceptions)

    tracker_timeout_seconds: float = TRACKER_TIMEOUT
    status_check_retries: int = STATUS_CHECK_RETRIES
    max_concurrency: int = Field(default=MAX_CONCURRENCY, ge=1)


class RunOptions(_SettingsModel):
    """Per-call overrides. None means: use the value from TrackerSettings."""

    generate_issues: Optional[bool] = None
    track_issues: Optional[bool] = None
    close_issues: Optional[bool] = None
    reopen_issues: Optional[bool] = None

    def resolve(self, settings: TrackerSettings) -> "RunOptions":
        """Return a copy with every flag filled in from settings."""
        return RunOptions(
            generate_issues=_pick(self.generate_issues, settings.generate_issues),
            track_issues=_pick(self.track_issues, settings.track_issues),
            close_issues=_pick(self.close_issues, settings.close_issues),
            reopen_issues=_pick(self.reopen_issues, settings.reopen_issues),
        )


def _pick(override: Optional[bool], default: bool) -> bool:
    return default if override is None else override


def _read_settings_file(path: str) -> dict:
    """Parse a YAML/JSON settings file. Returns {} on any failure."""
    if not path or not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except Exception as e:
        logger.warning("Failed to parse settings file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Settings file %s does not contain a mapping, ignoring", path)
        return {}
    return data


def load_settings(path: Optional[str] = None, **overrides) -> TrackerSettings:
    """
    Build TrackerSettings from defaults, an optional settings file and overrides.

    Parameters
    ----------
    path : str, optional
        YAML (.yml/.yaml) or JSON (.json) settings file.
    **overrides
        snake_case field values that take precedence over the file.

    Returns
    -------
    TrackerSettings
    """
    data = _read_settings_file(path) if path else {}
    merged = {to_snake(key): value for key, value in data.items()}
    merged.update(overrides)
    return TrackerSettings.model_validate(merged)
