"""
GitHub integration package.
"""

from prscore.integrations.github.client import (
    GitHubClient,
    parse_github_timestamp,
    resolve_github_token,
)

__all__ = [
    "GitHubClient",
    "parse_github_timestamp",
    "resolve_github_token",
]
