"""
Coverage Hook
=============
Adds a `coverage` entry (statements / branches / functions / lines percent)
for the failing test file to every ticket body and comment.

Reads an Istanbul/Jest `coverage-summary.json` (keys are file paths, values
hold {"statements": {"pct": ..}, ...}) or a flat {path: {statements: 85, ...}}
mapping. Lookup is by substring so absolute keys still match relative paths.
"""
import json
import logging
import os
from typing import Any, Dict, Optional

from tickettrail.hooks.hook_manager import TemplateData, TemplateDataHook
from tickettrail.models.test_result import CaseResult
from tickettrail.utils.path_utils import normalize_path

logger = logging.getLogger(__name__)

METRICS = ("statements", "branches", "functions", "lines")


class CoverageHook(TemplateDataHook):
    name = "CoverageHook"
    priority = 10

    def __init__(self, coverage_file_path: Optional[str] = None, coverage_data: Optional[Dict[str, Any]] = None) -> None:
        if coverage_data is not None:
            self.coverage_data = self._normalize(coverage_data)
        else:
            self.coverage_data = self._load(coverage_file_path)

    def _load(self, path: Optional[str]) -> Dict[str, Dict[str, float]]:
        if not path or not os.path.isfile(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return self._normalize(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning("Could not load coverage summary %s: %s", path, e)
            return {}

    @staticmethod
    def _normalize(raw: Dict[str, Any]) -> Dict[str, Dict[str, float]]:
        result = {}
        for file_key, metrics in raw.items():
            if file_key == "total" or not isinstance(metrics, dict):
                continue
            entry = {}
            for metric in METRICS:
                value = metrics.get(metric, 0)
                if isinstance(value, dict):
                    value = value.get("pct", 0)
                entry[metric] = value
            result[normalize_path(file_key)] = entry
        return result

    def get_coverage_for_file(self, file_path: str) -> Dict[str, float]:
        path = normalize_path(file_path)
        if path:
            for file_key, metrics in self.coverage_data.items():
                if file_key in path or path in file_key:
                    return dict(metrics)
        return {metric: 0 for metric in METRICS}

    def _with_coverage(self, data: TemplateData, file_path: str) -> TemplateData:
        return {**data, "coverage": self.get_coverage_for_file(file_path)}

    async def process_issue_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return self._with_coverage(data, file_path)

    async def process_close_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return self._with_coverage(data, file_path)

    async def process_reopen_data(self, data: TemplateData, test: CaseResult, file_path: str) -> TemplateData:
        return self._with_coverage(data, file_path)
