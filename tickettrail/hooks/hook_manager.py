"""
Hook Manager
============
Ordered pipeline of template-data hooks. Each hook may implement any of:

    process_issue_data(data, test, file_path)   -> dict   (new ticket body)
    process_close_data(data, test, file_path)   -> dict   (close comment)
    process_reopen_data(data, test, file_path)  -> dict   (reopen comment)

Methods may be plain functions or coroutines. Hooks run sorted ascending by
priority (lower first); the list is re-sorted after every registration, so
only priority decides the order. Each hook receives the previous hook's
output. A hook that raises, or returns something other than a dict, is
logged and skipped; the data it was given flows on unchanged.
"""
import inspect
import logging
from typing import Any, Dict, List, Optional

from tickettrail.models.test_result import CaseResult

logger = logging.getLogger(__name__)

TemplateData = Dict[str, Any]


class TemplateDataHook:
    """Base class for hooks. Subclasses override the process_* methods they need."""

    name: str = "TemplateDataHook"
    priority: int = 100


class HookManager:
    def __init__(self, hooks: Optional[List[TemplateDataHook]] = None, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._hooks: List[TemplateDataHook] = list(hooks or [])
        self._sort_hooks()

    def _sort_hooks(self) -> None:
        # sorted() is stable, equal priorities keep registration order
        self._hooks = sorted(self._hooks, key=lambda hook: hook.priority)

    def register_hook(self, hook: TemplateDataHook) -> None:
        self._hooks.append(hook)
        self._sort_hooks()
        self.logger.debug("Registered hook %s (priority %s)", getattr(hook, "name", hook), hook.priority)

    def get_hooks(self) -> List[TemplateDataHook]:
        return list(self._hooks)

    async def _reduce(self, method_name: str, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        processed = dict(data)
        for hook in self._hooks:
            method = getattr(hook, method_name, None)
            if method is None:
                continue
            try:
                result = method(processed, test, file_path)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                self.logger.error("Hook %s failed in %s: %s", getattr(hook, "name", hook), method_name, e)
                continue
            if not isinstance(result, dict):
                self.logger.warning(
                    "Hook %s returned %s from %s, ignoring", getattr(hook, "name", hook), type(result).__name__, method_name
                )
                continue
            processed = result
        return processed

    async def process_issue_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return await self._reduce("process_issue_data", data, test, file_path)

    async def process_close_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return await self._reduce("process_close_data", data, test, file_path)

    async def process_reopen_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return await self._reduce("process_reopen_data", data, test, file_path)
