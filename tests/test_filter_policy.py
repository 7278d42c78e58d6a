"""
Policy Filter Tests
===================
Glob precedence for test paths, regex precedence for branches, skip list
and custom template lookup.
"""
from unittest.mock import MagicMock, patch

from tickettrail.core.config import BranchFilters, PathFilters, TemplateExceptions
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.utils.path_utils import matches_glob


def _policy(include=None, exclude=None, branch="main", branch_include=None, branch_exclude=None, **exceptions):
    return PolicyFilter(
        test_filters=PathFilters(include=include or ["*"], exclude=exclude or []),
        branch_filters=BranchFilters(include=branch_include or [".*"], exclude=branch_exclude or []),
        template_exceptions=TemplateExceptions(**exceptions),
        branch_resolver=lambda: branch,
    )


# ===================================================================
# Glob matching
# ===================================================================
def test_globstar_matches_zero_directories():
    assert matches_glob("a.mock.test.ts", "**/*.mock.test.ts")
    assert matches_glob("src/a.test.ts", "src/**/*.test.ts")


def test_globstar_matches_nested_directories():
    assert matches_glob("src/deep/x/a.test.ts", "**/*.test.ts")
    assert matches_glob("src/deep/x/a.test.ts", "src/**/*.test.ts")


def test_glob_rejects_other_suffix():
    assert not matches_glob("src/a.spec.ts", "**/*.test.ts")


def test_single_star_stays_within_one_directory():
    assert matches_glob("src/a.test.ts", "src/*.test.ts")
    assert not matches_glob("src/deep/nested/x.test.ts", "src/*.test.ts")
    assert not matches_glob("src/deep/x.test.ts", "*.test.ts")


def test_repeated_globstar_segments_collapse():
    assert matches_glob("src/a/b.test.ts", "src/**/**/*.test.ts")
    assert matches_glob("src/b.test.ts", "src/**/**/*.test.ts")


# ===================================================================
# should_include_test
# ===================================================================
def test_exclude_takes_precedence_over_include():
    policy = _policy(include=["**/*.test.ts"], exclude=["**/*.mock.test.ts"])
    assert policy.should_include_test("a.mock.test.ts") is False
    assert policy.should_include_test("a.test.ts") is True


def test_include_star_matches_everything():
    assert _policy().should_include_test("anything/at/all.js") is True


def test_no_include_match_is_excluded():
    policy = _policy(include=["src/**/*.test.ts"])
    assert policy.should_include_test("lib/a.test.ts") is False


def test_directory_exclude_does_not_reach_subdirectories():
    policy = _policy(include=["**/*.test.ts"], exclude=["tests/*"])
    assert policy.should_include_test("tests/a.test.ts") is False
    assert policy.should_include_test("tests/unit/a.test.ts") is True


def test_windows_paths_are_normalized():
    policy = _policy(include=["src/**/*.test.ts"], exclude=["**/legacy/**"])
    assert policy.should_include_test("src\\math\\a.test.ts") is True
    assert policy.should_include_test("src\\legacy\\a.test.ts") is False


# ===================================================================
# Branch filters
# ===================================================================
def test_branch_exclude_wins():
    policy = _policy(branch="release/1.0", branch_exclude=["^release/"])
    assert policy.should_create_issues_on_current_branch() is False


def test_branch_default_include_matches_everything():
    assert _policy(branch="feature/x").should_create_issues_on_current_branch() is True


def test_branch_include_must_match():
    policy = _policy(branch="feature/x", branch_include=["^main$", "^develop$"])
    assert policy.should_create_issues_on_current_branch() is False


def test_branch_resolution_failure_defaults_to_main():
    def broken():
        raise RuntimeError("no git")

    policy = PolicyFilter(
        branch_filters=BranchFilters(include=["^main$"]),
        branch_resolver=broken,
    )
    assert policy.current_branch() == "main"
    assert policy.should_create_issues_on_current_branch() is True


def test_branch_is_resolved_once_until_reset():
    resolver = MagicMock(return_value="main")
    policy = PolicyFilter(branch_filters=BranchFilters(include=["^main$"]), branch_resolver=resolver)

    for _ in range(3):
        assert policy.should_create_issues_on_current_branch() is True
    assert resolver.call_count == 1

    policy.reset_branch()
    resolver.return_value = "feature/x"
    assert policy.should_create_issues_on_current_branch() is False
    assert resolver.call_count == 2


def test_unknown_git_branch_defaults_to_main():
    with patch("tickettrail.policy.filter_policy.get_branch_name", return_value="unknown"):
        policy = PolicyFilter(branch_filters=BranchFilters(include=["^main$"]))
        assert policy.should_create_issues_on_current_branch() is True


def test_invalid_branch_pattern_is_ignored():
    policy = _policy(branch="main", branch_exclude=["["])
    assert policy.should_create_issues_on_current_branch() is True


# ===================================================================
# Template exceptions
# ===================================================================
def test_skip_issue_creation():
    policy = _policy(skip_issue_creation=["**/flaky/**"])
    assert policy.should_skip_issue_creation("src/flaky/a.test.ts") is True
    assert policy.should_skip_issue_creation("src/stable/a.test.ts") is False


def test_custom_template_first_match_wins():
    policy = _policy(custom_templates=[
        {"pattern": "src/api/**", "template": "api"},
        {"pattern": "src/**", "template": "generic"},
    ])
    assert policy.get_custom_template("src/api/users.test.ts") == "api"
    assert policy.get_custom_template("src/ui/button.test.ts") == "generic"
    assert policy.get_custom_template("lib/x.test.ts") is None
