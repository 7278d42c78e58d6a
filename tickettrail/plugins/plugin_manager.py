"""
Plugin Manager
==============
Lifecycle plugins observe ticket transitions. A plugin implements any subset
of:

    before_create_issue(test, file_path)
    after_create_issue(test, file_path, issue_id)
    before_close_issue(test, file_path, issue_id)
    after_close_issue(test, file_path, issue_id)
    before_reopen_issue(test, file_path, issue_id)
    after_reopen_issue(test, file_path, issue_id)

Plugins run sequentially in registration order and are awaited. Missing
methods are skipped. An exception in one plugin is logged and does not stop
the remaining plugins or the transition.
"""
import inspect
import logging
from typing import Any, List, Optional

from tickettrail.models.test_result import CaseResult

logger = logging.getLogger(__name__)


class IssueTrackerPlugin:
    """Base class for plugins. Subclasses override the hooks they care about."""

    name: str = "IssueTrackerPlugin"


class PluginManager:
    def __init__(self, plugins: Optional[List[Any]] = None, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._plugins: List[Any] = list(plugins or [])

    def register_plugin(self, plugin: Any) -> None:
        self._plugins.append(plugin)
        self.logger.debug("Registered plugin %s", getattr(plugin, "name", type(plugin).__name__))

    def get_plugins(self) -> List[Any]:
        return list(self._plugins)

    async def _dispatch(self, method_name: str, *args) -> None:
        for plugin in self._plugins:
            method = getattr(plugin, method_name, None)
            if method is None:
                continue
            try:
                result = method(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "Plugin %s failed in %s: %s", getattr(plugin, "name", type(plugin).__name__), method_name, e
                )

    async def before_create_issue(self, test: CaseResult, file_path: str) -> None:
        await self._dispatch("before_create_issue", test, file_path)

    async def after_create_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._dispatch("after_create_issue", test, file_path, issue_id)

    async def before_close_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._dispatch("before_close_issue", test, file_path, issue_id)

    async def after_close_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._dispatch("after_close_issue", test, file_path, issue_id)

    async def before_reopen_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._dispatch("before_reopen_issue", test, file_path, issue_id)

    async def after_reopen_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._dispatch("after_reopen_issue", test, file_path, issue_id)
