"""
Constants
Centralised storage for ticket statuses, labels and default file names.
"""
STATUS_OPEN = "open"
STATUS_CLOSED = "closed"
ISSUE_STATUSES = (STATUS_OPEN, STATUS_CLOSED)

DEFAULT_LABELS = ["bug", "test-failure"]
DEFAULT_DATABASE_PATH = "test-issue-mapping.json"
DEFAULT_BUGS_DIR = "bugs"

TRACKER_GITHUB = "github"
TRACKER_FILE = "file"

DEFAULT_SUITE_NAME = "Default Suite"
DEFAULT_TEST_NAME = "Unknown Test"
NAME_SEPARATOR = " > "

ISSUE_TITLE_PREFIX = "Test Failure:"
UNKNOWN = "Unknown"
