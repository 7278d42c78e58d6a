"""
Template Renderer
=================
Turns a test result into ticket prose.

Three documents are produced:
    issue body      - when a ticket is created
    close comment   - when the test passes again
    reopen comment  - when a closed ticket's test fails again

Rendering pipeline (MarkdownTemplateRenderer):
    1. build a template-data dict (test names, error details, git info, env)
    2. pass it through the HookManager (process_issue_data / _close_ / _reopen_)
    3. pick the template: a custom one named by PolicyFilter.get_custom_template
       if template_dir holds it, otherwise the built-in Markdown default
    4. str.format_map the data into it; unknown placeholders render empty

Custom template files in template_dir:
    <name>.md, <name>CloseComment.md, <name>ReopenComment.md
"""
import logging
import os
import platform
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from tickettrail.hooks.hook_manager import HookManager, TemplateData
from tickettrail.models.git_info import GitInfo
from tickettrail.models.test_result import CaseResult
from tickettrail.policy.filter_policy import PolicyFilter
from tickettrail.utils.errors import detect_error_type
from tickettrail.utils.git_utils import get_git_info
from tickettrail.utils.test_identifier import describe, extract_test_name_parts

logger = logging.getLogger(__name__)

ISSUE = "issue"
CLOSE_COMMENT = "closeComment"
REOPEN_COMMENT = "reopenComment"

TEMPLATE_SUFFIXES = {
    ISSUE: "",
    CLOSE_COMMENT: "CloseComment",
    REOPEN_COMMENT: "ReopenComment",
}

ANSI_PATTERN = re.compile(r"[\u001b\u009b][\[()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-ORZcf-nqry=><]")
LOCATION_PATTERN = re.compile(r"\(([^:()]+):(\d+):(\d+)\)")

DEFAULT_ISSUE_TEMPLATE = """## Test Failure: {test_name}

**Suite:** {test_suite}
**File:** `{test_file_path}`
**Failed at:** {failure_time}
**Duration:** {duration} ms

### Error ({error_type})

```
{error_message}
```

**Location:** {error_location}

<details>
<summary>Stack trace</summary>

```
{stack_trace}
```

</details>

### Code

```{code_language}
{code_snippet}
```

### Possible causes

{possible_causes}

### Environment

- Branch: `{branch_name}`
- Commit: `{commit_hash}` by {commit_author}: {commit_message}
- Python: {python_version} on {os_info} ({environment})

_This issue is managed automatically by tickettrail and will be closed when the test passes._
"""

DEFAULT_CLOSE_TEMPLATE = """## Test Passing: {test_name}

The test in `{test_file_path}` is passing again as of {fixed_time}.

- Fixed in: `{commit_hash}` by {commit_author}
- Commit message: {commit_message}
- Branch: `{branch_name}`

Closing this issue automatically.
"""

DEFAULT_REOPEN_TEMPLATE = """## Test Failing Again: {test_name}

The test in `{test_file_path}` regressed at {regression_time}.

### Error ({error_type})

```
{error_message}
```

**Location:** {error_location}

- Commit: `{commit_hash}` by {commit_author}: {commit_message}

Reopening this issue automatically.
"""

DEFAULT_TEMPLATES = {
    ISSUE: DEFAULT_ISSUE_TEMPLATE,
    CLOSE_COMMENT: DEFAULT_CLOSE_TEMPLATE,
    REOPEN_COMMENT: DEFAULT_REOPEN_TEMPLATE,
}

CODE_LANGUAGES = {
    ".js": "javascript",
    ".ts": "typescript",
    ".jsx": "jsx",
    ".tsx": "tsx",
    ".py": "python",
}


class TemplateRenderer(Protocol):
    async def generate_issue_body(self, test: CaseResult, file_path: str) -> str:
        ...

    async def generate_comment_body(self, test: CaseResult, file_path: str) -> str:
        ...

    async def generate_reopen_body(self, test: CaseResult, file_path: str) -> str:
        ...

    def get_git_info(self) -> GitInfo:
        ...

    def reset_git_info(self) -> None:
        ...


class _TemplateValues(dict):
    def __missing__(self, key):
        return ""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def strip_ansi(text: Optional[str]) -> str:
    return ANSI_PATTERN.sub("", text or "")


def extract_error_info(failure_messages) -> Dict[str, Any]:
    if not failure_messages:
        return {
            "message": "No error message available",
            "stack": "",
            "type": "Unknown",
            "line_number": 0,
            "location": "Unknown",
        }

    error_message = strip_ansi(failure_messages[0])
    match = LOCATION_PATTERN.search(error_message)
    line_number = int(match.group(2)) if match else 0
    location = f"{match.group(1)}:{line_number}" if match else "Unknown"

    lines = error_message.split("\n")
    return {
        "message": "\n".join(lines[:5]),
        "stack": "\n".join(lines[5:]),
        "type": detect_error_type(error_message),
        "line_number": line_number,
        "location": location,
    }


def extract_code_snippet(file_path: str, line_number: int, context: int = 5) -> str:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            lines = f.read().split("\n")
    except (OSError, UnicodeDecodeError):
        return "Could not extract code snippet"

    if not line_number:
        return "\n".join(lines[:20])

    start = max(0, line_number - context - 1)
    end = min(len(lines), line_number + context)
    snippet = []
    for index in range(start, end):
        current = index + 1
        marker = "> " if current == line_number else "  "
        snippet.append(f"{marker}{current}: {lines[index]}")
    return "\n".join(snippet)


def analyze_possible_causes(error_message: str, file_path: str) -> list:
    causes = []
    if "Cannot find module" in error_message or "ModuleNotFoundError" in error_message:
        causes.append("Missing dependency or incorrect import path")
    if "is not a function" in error_message:
        causes.append("Method name typo or undefined method")
    if "Cannot read propert" in error_message or "undefined is not an object" in error_message:
        causes.append("Accessing property on undefined or null object")
    if "expect(" in error_message:
        causes.append("Assertion failure - expected value does not match actual value")
    if "timeout" in error_message.lower():
        causes.append("Test timeout - async operation took too long")
    causes.append(f"Check the test file {file_path} for recent changes")
    return causes


def _environment_info() -> Dict[str, Any]:
    in_ci = bool(os.getenv("CI"))
    return {
        "python_version": platform.python_version(),
        "os_info": f"{platform.system()} {platform.release()}",
        "environment": "CI" if in_ci else "Local",
        "ci_info": {
            "build_url": os.getenv("BUILD_URL") or os.getenv("CI_BUILD_URL") or os.getenv("GITHUB_RUN_ID") or "Unknown",
            "job_name": os.getenv("JOB_NAME") or os.getenv("CI_JOB_NAME") or os.getenv("GITHUB_JOB") or "Unknown",
        } if in_ci else None,
    }


class MarkdownTemplateRenderer:
    def __init__(
        self,
        policy: Optional[PolicyFilter] = None,
        hook_manager: Optional[HookManager] = None,
        template_dir: Optional[str] = None,
        git_info_provider: Callable[[], GitInfo] = get_git_info,
    ) -> None:
        self.policy = policy or PolicyFilter()
        self.hook_manager = hook_manager or HookManager()
        self.template_dir = template_dir
        self._git_info_provider = git_info_provider
        self._git_info: Optional[GitInfo] = None
        self._custom_cache: Dict[str, Optional[str]] = {}

    def get_git_info(self) -> GitInfo:
        # git is shelled out to once per run, not once per rendered body
        if self._git_info is None:
            self._git_info = self._git_info_provider()
        return self._git_info

    def reset_git_info(self) -> None:
        self._git_info = None

    # ------------------------------------------------------------------
    # Template data
    # ------------------------------------------------------------------

    def _base_data(self, test: CaseResult, file_path: str) -> TemplateData:
        suite_name, test_name = extract_test_name_parts(test)
        git_info = self.get_git_info()
        return {
            "test_name": test_name,
            "test_suite": suite_name,
            "full_test_name": describe(test),
            "test_file_path": file_path,
            "ancestor_titles": list(test.ancestor_titles),
            "duration": test.duration if test.duration is not None else "n/a",
            "status": test.status,
            "num_passing_asserts": test.num_passing_asserts,
            "branch_name": git_info.branch,
            "commit_hash": git_info.commit,
            "commit_message": git_info.message,
            "commit_author": git_info.author,
        }

    def _failure_data(self, test: CaseResult, file_path: str) -> TemplateData:
        error_info = extract_error_info(test.failure_messages)
        return {
            "error_message": error_info["message"],
            "stack_trace": error_info["stack"],
            "error_type": error_info["type"],
            "error_location": error_info["location"],
            "code_language": CODE_LANGUAGES.get(os.path.splitext(file_path)[1].lower(), ""),
            "code_snippet": extract_code_snippet(file_path, error_info["line_number"]),
            "possible_causes": analyze_possible_causes(error_info["message"], file_path),
        }

    # ------------------------------------------------------------------
    # Template lookup and formatting
    # ------------------------------------------------------------------

    def _load_custom(self, name: str) -> Optional[str]:
        if name in self._custom_cache:
            return self._custom_cache[name]
        content = None
        if self.template_dir:
            path = os.path.join(self.template_dir, f"{name}.md")
            if os.path.isfile(path):
                with open(path, "r", encoding="utf-8") as f:
                    content = f.read()
            else:
                logger.debug("Custom template %s not found, using default", path)
        self._custom_cache[name] = content
        return content

    def get_template(self, template_type: str, file_path: str) -> str:
        custom_name = self.policy.get_custom_template(file_path)
        if custom_name:
            content = self._load_custom(f"{custom_name}{TEMPLATE_SUFFIXES[template_type]}")
            if content is not None:
                return content
        return DEFAULT_TEMPLATES[template_type]

    @staticmethod
    def _format(template: str, data: TemplateData) -> str:
        values = _TemplateValues()
        for key, value in data.items():
            if isinstance(value, (list, tuple)):
                value = "\n".join(f"- {item}" for item in value)
            elif value is None:
                value = ""
            values[key] = value
        return template.format_map(values)

    # ------------------------------------------------------------------
    # TemplateRenderer
    # ------------------------------------------------------------------

    async def generate_issue_body(self, test: CaseResult, file_path: str) -> str:
        data = {
            **self._base_data(test, file_path),
            **self._failure_data(test, file_path),
            **_environment_info(),
            "failure_time": _now(),
        }
        data = await self.hook_manager.process_issue_data(data, test, file_path)
        return self._format(self.get_template(ISSUE, file_path), data)

    async def generate_comment_body(self, test: CaseResult, file_path: str) -> str:
        data = {
            **self._base_data(test, file_path),
            **_environment_info(),
            "fixed_time": _now(),
            "fix_notes": "",
        }
        data = await self.hook_manager.process_close_data(data, test, file_path)
        return self._format(self.get_template(CLOSE_COMMENT, file_path), data)

    async def generate_reopen_body(self, test: CaseResult, file_path: str) -> str:
        data = {
            **self._base_data(test, file_path),
            **self._failure_data(test, file_path),
            "regression_time": _now(),
        }
        data = await self.hook_manager.process_reopen_data(data, test, file_path)
        return self._format(self.get_template(REOPEN_COMMENT, file_path), data)
