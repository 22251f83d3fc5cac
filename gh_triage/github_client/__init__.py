"""GitHub tracker client."""

from .client import CreatedIssue, GitHubClient

__all__ = ["CreatedIssue", "GitHubClient"]
