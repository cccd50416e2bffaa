"""
Prompts for the PR evaluation judgment.

Rendering is a pure find-and-replace of named ``{{placeholder}}`` markers;
no I/O happens here.
"""

import re
from typing import Optional, Sequence

from prscore.core.exceptions import ConfigurationError
from prscore.db.models import (
    Change,
    ChangedFile,
    Issue,
    ProductComponent,
    SeverityLevel,
)

SYSTEM_PROMPT = "You are scoring GitHub PRs for a bug bounty. Respond with JSON only."

PLACEHOLDERS = (
    "components_table",
    "severity_table",
    "issue_section",
    "pr_section",
    "files_section",
    "eligibility_criteria",
)

ELIGIBILITY_CRITERIA = (
    "GitHub issue exists with reproducible steps.",
    "PR contains a working fix.",
    "PR description links to the issue (Fixes #123 or similar).",
    "Tests are included or updated.",
)

NO_LINKED_ISSUE = "No linked issue"
NO_FILES = "No file list available"
NO_DESCRIPTION = "No description"

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


def _marker(name: str) -> str:
    return "{{" + name + "}}"


def missing_placeholders(template: str) -> list[str]:
    return [name for name in PLACEHOLDERS if _marker(name) not in template]


def validate_template(template: str) -> None:
    """
    Raise if a prompt template lacks any of the required placeholders.

    Raises:
        ConfigurationError: listing the missing placeholder names.
    """
    missing = missing_placeholders(template or "")
    if missing:
        raise ConfigurationError(
            "Prompt template is missing placeholders: " + ", ".join(missing)
        )


def components_table(components: Sequence[ProductComponent]) -> str:
    return "\n".join(
        f"{c.key} ({c.name}) - multiplier {c.multiplier} - {c.description or ''}"
        for c in components
    )


def severity_table(severities: Sequence[SeverityLevel]) -> str:
    return "\n".join(
        f"{s.key} ({s.name}) - base points {s.base_points} - {s.description or ''}"
        for s in severities
    )


def issue_section(issues: Sequence[Issue]) -> str:
    if not issues:
        return NO_LINKED_ISSUE
    blocks = []
    for issue in issues:
        blocks.append(
            f"#{issue.number}: {issue.title}\n"
            f"Labels: {', '.join(issue.labels or [])}\n"
            f"URL: {issue.url or 'N/A'}\n"
            f"Body:\n{issue.body or NO_DESCRIPTION}\n"
        )
    return "\n---\n".join(blocks)


def pr_section(change: Change, repo_name: Optional[str] = None) -> str:
    return (
        f"Title: {change.title}\n"
        f"Repo: {repo_name or 'unknown'}\n"
        f"URL: {change.url or 'N/A'}\n"
        f"Body:\n{change.body or NO_DESCRIPTION}\n"
    )


def files_section(files: Sequence[ChangedFile]) -> str:
    if not files:
        return NO_FILES
    return "\n".join(f"- {f.path} ({f.status or 'changed'})" for f in files)


def eligibility_criteria() -> str:
    return "\n".join(f"- {item}" for item in ELIGIBILITY_CRITERIA)


def render_prompt(
    template: str,
    change: Change,
    *,
    repo_name: Optional[str] = None,
    files: Sequence[ChangedFile] = (),
    issues: Sequence[Issue] = (),
    components: Sequence[ProductComponent] = (),
    severities: Sequence[SeverityLevel] = (),
) -> str:
    """Substitute every placeholder in the template."""
    values = {
        "components_table": components_table(components),
        "severity_table": severity_table(severities),
        "issue_section": issue_section(issues),
        "pr_section": pr_section(change, repo_name),
        "files_section": files_section(files),
        "eligibility_criteria": eligibility_criteria(),
    }
    # One pass, so markers inside inserted PR or issue text stay literal
    return PLACEHOLDER_PATTERN.sub(
        lambda m: values.get(m.group(1), m.group(0)), template
    )
