"""
Factory
=======
Wires a ReconciliationEngine from TrackerSettings. Backend (github | file)
and transport (gh CLI | REST) are chosen here, once, from explicit settings.

Pre-built collaborators (client, storage client, hooks, plugins) can be
passed in to replace the defaults, which is how tests and embedding
applications inject fakes.
"""
import logging
from typing import List, Optional

from tickettrail.core.config import TrackerSettings
from tickettrail.core.constants import TRACKER_FILE, TRACKER_GITHUB
from tickettrail.engine.reconciler import ReconciliationEngine
from tickettrail.github.cli_client import GitHubCliClient
from tickettrail.github.client_protocol import IssueClient
from tickettrail.github.rest_client import GitHubRestClient
from tickettrail.hooks.hook_manager import HookManager, TemplateDataHook
from tickettrail.plugins.plugin_manager import PluginManager
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.storage.mapping_store import MappingStore
from tickettrail.storage.storage_client import StorageClient
from tickettrail.templates.renderer import MarkdownTemplateRenderer, TemplateRenderer
from tickettrail.trackers.base import BugTracker
from tickettrail.trackers.file_tracker import FileBugTracker
from tickettrail.trackers.github_tracker import GitHubBugTracker
from tickettrail.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


def create_issue_client(settings: TrackerSettings) -> IssueClient:
    if settings.github_use_rest:
        if not settings.github_token or not settings.github_repo:
            raise ConfigurationError("GitHub token and repository are required when using the REST API")
        return GitHubRestClient(
            settings.github_token, settings.github_repo, timeout_seconds=settings.tracker_timeout_seconds
        )
    return GitHubCliClient(default_labels=settings.labels, timeout_seconds=settings.tracker_timeout_seconds)


def create_mapping_store(settings: TrackerSettings, storage_client: Optional[StorageClient] = None) -> MappingStore:
    return MappingStore(settings.database_path, storage_client=storage_client)


def create_renderer(
    settings: TrackerSettings,
    policy: PolicyFilter,
    hooks: Optional[List[TemplateDataHook]] = None,
) -> MarkdownTemplateRenderer:
    return MarkdownTemplateRenderer(
        policy=policy,
        hook_manager=HookManager(hooks),
        template_dir=settings.template_dir,
    )


def create_bug_tracker(
    settings: TrackerSettings,
    renderer: TemplateRenderer,
    client: Optional[IssueClient] = None,
    mapping_store: Optional[MappingStore] = None,
) -> BugTracker:
    if settings.tracker_type == TRACKER_GITHUB:
        return GitHubBugTracker(
            client or create_issue_client(settings),
            renderer,
            mapping_store or create_mapping_store(settings),
            labels=settings.labels,
            status_check_retries=settings.status_check_retries,
        )
    if settings.tracker_type == TRACKER_FILE:
        return FileBugTracker(settings.bugs_dir, renderer)
    raise ConfigurationError(f"Unknown tracker type: {settings.tracker_type}")


def create_engine(
    settings: TrackerSettings,
    hooks: Optional[List[TemplateDataHook]] = None,
    plugins: Optional[list] = None,
    client: Optional[IssueClient] = None,
    storage_client: Optional[StorageClient] = None,
    policy: Optional[PolicyFilter] = None,
) -> ReconciliationEngine:
    """Build the full object graph for one run."""
    policy = policy or PolicyFilter.from_settings(settings)
    renderer = create_renderer(settings, policy, hooks)
    mapping_store = None
    if settings.tracker_type == TRACKER_GITHUB:
        mapping_store = create_mapping_store(settings, storage_client)
    tracker = create_bug_tracker(settings, renderer, client=client, mapping_store=mapping_store)
    logger.info("Using %s for this run", type(tracker).__name__)
    return ReconciliationEngine(tracker, policy, settings=settings, plugin_manager=PluginManager(plugins))
