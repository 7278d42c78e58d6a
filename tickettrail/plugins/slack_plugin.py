"""
Slack Notification Plugin
=========================
Posts a short message to a Slack incoming webhook whenever a ticket is
created, closed or reopened. Delivery failures are logged, never raised.
"""
import logging
from typing import Optional

import httpx

from tickettrail.plugins.plugin_manager import IssueTrackerPlugin
from tickettrail.models.test_result import CaseResult
from tickettrail.utils.test_identifier import describe

logger = logging.getLogger(__name__)


class SlackNotificationPlugin(IssueTrackerPlugin):
    name = "SlackNotificationPlugin"

    def __init__(
        self,
        webhook_url: str,
        channel: Optional[str] = None,
        repo: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.channel = channel
        self.repo = repo
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _issue_link(self, issue_id: str) -> str:
        if self.repo and str(issue_id).isdigit():
            return f"<https://github.com/{self.repo}/issues/{issue_id}|#{issue_id}>"
        return f"#{issue_id}"

    async def _post(self, text: str, color: str) -> bool:
        message = {"text": text, "attachments": [{"text": text, "color": color}]}
        if self.channel:
            message["channel"] = self.channel
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=message)
                response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning("Slack notification failed: %s", e)
            return False

    async def after_create_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._post(f"New test failure {self._issue_link(issue_id)}: {describe(test)} ({file_path})", "danger")

    async def after_close_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._post(f"Test fixed, closed {self._issue_link(issue_id)}: {describe(test)} ({file_path})", "good")

    async def after_reopen_issue(self, test: CaseResult, file_path: str, issue_id: str) -> None:
        await self._post(f"Test failing again, reopened {self._issue_link(issue_id)}: {describe(test)} ({file_path})", "warning")
