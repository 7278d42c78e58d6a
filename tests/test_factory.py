"""
Factory Tests
=============
Backend and transport selection from TrackerSettings.
"""
import pytest

from tickettrail.core.config import TrackerSettings
from tickettrail.github.cli_client import GitHubCliClient
from tickettrail.github.rest_client import GitHubRestClient
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.services.factory import create_bug_tracker, create_engine, create_issue_client
from tickettrail.templates.renderer import MarkdownTemplateRenderer
from tickettrail.trackers.file_tracker import FileBugTracker
from tickettrail.trackers.github_tracker import GitHubBugTracker
from tickettrail.utils.errors import ConfigurationError


def test_cli_client_by_default():
    client = create_issue_client(TrackerSettings(github_use_rest=False, labels=["flaky"], tracker_timeout_seconds=5))
    assert isinstance(client, GitHubCliClient)
    assert client.default_labels == ["flaky"]
    assert client.timeout_seconds == 5


def test_rest_client_needs_token_and_repo():
    with pytest.raises(ConfigurationError):
        create_issue_client(TrackerSettings(github_use_rest=True, github_token=None, github_repo="o/r"))
    client = create_issue_client(TrackerSettings(github_use_rest=True, github_token="t", github_repo="o/r"))
    assert isinstance(client, GitHubRestClient)


def test_unknown_tracker_type_is_rejected():
    settings = TrackerSettings.model_construct(tracker_type="jira")
    with pytest.raises(ConfigurationError, match="Unknown tracker type: jira"):
        create_bug_tracker(settings, MarkdownTemplateRenderer())


def test_create_engine_wires_selected_backend(tmp_path):
    policy = PolicyFilter(branch_resolver=lambda: "main")
    github = create_engine(
        TrackerSettings(tracker_type="github", github_use_rest=False, database_path=str(tmp_path / "m.json")),
        policy=policy,
    )
    local = create_engine(TrackerSettings(tracker_type="file", bugs_dir=str(tmp_path / "bugs")), policy=policy)
    assert isinstance(github.tracker, GitHubBugTracker)
    assert github.tracker.mapping_store.client.database_path == str(tmp_path / "m.json")
    assert isinstance(local.tracker, FileBugTracker)
    assert local.policy is policy
