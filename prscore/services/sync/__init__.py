"""
GitHub sync: mirrors repositories, issues and merged pull requests into the
tables the evaluation pipeline reads.
"""

from prscore.services.sync.github_sync import GitHubSyncService, parse_linked_issues

__all__ = ["GitHubSyncService", "parse_linked_issues"]
