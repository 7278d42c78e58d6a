"""
Policy Filter
=============
Side-effect-free gates deciding which tests and branches take part in ticket
tracking. Configuration is read once at construction and never mutated. The current
branch is resolved once and cached until the engine resets it for the next run.

Gates (all must pass before any ticket mutation):
    1. should_include_test(path)              - exclude globs win over include globs
    2. not should_skip_issue_creation(path)   - per-file exemption
    3. should_create_issues_on_current_branch - exclude regexes win over include regexes

Globs use "/" separators regardless of OS and match one path segment per
pattern segment; only "**" spans directories, including zero of them. Branch patterns are regular expressions searched anywhere in
the branch name.
"""
import logging
import re
from typing import Callable, Optional

from tickettrail.core.config import BranchFilters, PathFilters, TemplateExceptions, TrackerSettings
from tickettrail.utils.git_utils import UNKNOWN, get_branch_name
from tickettrail.utils.path_utils import matches_any, matches_glob, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


def _resolve_branch() -> str:
    branch = get_branch_name()
    return DEFAULT_BRANCH if branch == UNKNOWN else branch


class PolicyFilter:
    def __init__(
        self,
        test_filters: Optional[PathFilters] = None,
        branch_filters: Optional[BranchFilters] = None,
        template_exceptions: Optional[TemplateExceptions] = None,
        branch_resolver: Callable[[], str] = _resolve_branch,
    ) -> None:
        self.test_filters = test_filters or PathFilters()
        self.branch_filters = branch_filters or BranchFilters()
        self.template_exceptions = template_exceptions or TemplateExceptions()
        self._branch_resolver = branch_resolver
        self._branch: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: TrackerSettings, **kwargs) -> "PolicyFilter":
        return cls(
            test_filters=settings.test_filters,
            branch_filters=settings.branch_filters,
            template_exceptions=settings.template_exceptions,
            **kwargs,
        )

    def should_include_test(self, file_path: str) -> bool:
        path = normalize_path(file_path)
        if matches_any(path, self.test_filters.exclude):
            return False
        return matches_any(path, self.test_filters.include)

    def should_skip_issue_creation(self, file_path: str) -> bool:
        return matches_any(normalize_path(file_path), self.template_exceptions.skip_issue_creation)

    def should_create_issues_on_current_branch(self) -> bool:
        branch = self.current_branch()
        if any(self._search(p, branch) for p in self.branch_filters.exclude):
            return False
        return any(self._search(p, branch) for p in self.branch_filters.include)

    def get_custom_template(self, file_path: str) -> Optional[str]:
        """Name of the first custom template whose glob matches, else None."""
        path = normalize_path(file_path)
        for custom in self.template_exceptions.custom_templates:
            if matches_glob(path, custom.pattern):
                return custom.template
        return None

    def current_branch(self) -> str:
        """Branch name, resolved once until reset_branch() is called."""
        if self._branch is None:
            try:
                self._branch = self._branch_resolver() or DEFAULT_BRANCH
            except Exception as e:
                logger.warning("Could not resolve current branch, assuming %s: %s", DEFAULT_BRANCH, e)
                self._branch = DEFAULT_BRANCH
        return self._branch

    def reset_branch(self) -> None:
        self._branch = None

    @staticmethod
    def _search(pattern: str, value: str) -> bool:
        try:
            return re.search(pattern, value) is not None
        except re.error as e:
            logger.warning("Ignoring invalid branch pattern %r: %s", pattern, e)
            return False
