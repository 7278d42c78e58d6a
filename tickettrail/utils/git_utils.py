"""
Git Utils
=========
Reads commit metadata from the local checkout via git subprocesses.
Every lookup degrades to "unknown" instead of raising; a repository without
git (or a detached CI workspace) must never break ticket tracking.
"""
import logging
import subprocess
from typing import Optional

from tickettrail.models.git_info import GitInfo

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _git(args, cwd: Optional[str] = None) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        logger.debug("git %s failed: %s", " ".join(args), e)
        return None
    return result.stdout.strip()


def is_git_available(cwd: Optional[str] = None) -> bool:
    return _git(["--version"], cwd) is not None


def get_branch_name(cwd: Optional[str] = None) -> str:
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd) or UNKNOWN


def get_commit_hash(cwd: Optional[str] = None) -> str:
    return _git(["log", "-1", "--pretty=format:%H"], cwd) or UNKNOWN


def get_commit_author(cwd: Optional[str] = None) -> str:
    return _git(["log", "-1", "--pretty=format:%an"], cwd) or UNKNOWN


def get_commit_message(cwd: Optional[str] = None) -> str:
    return _git(["log", "-1", "--pretty=format:%s"], cwd) or UNKNOWN


def get_git_info(cwd: Optional[str] = None) -> GitInfo:
    """Collect branch, commit, author and subject of HEAD."""
    if not is_git_available(cwd):
        return GitInfo(branch=UNKNOWN, commit=UNKNOWN, author=UNKNOWN, message=UNKNOWN)
    return GitInfo(
        branch=get_branch_name(cwd),
        commit=get_commit_hash(cwd),
        author=get_commit_author(cwd),
        message=get_commit_message(cwd),
    )
