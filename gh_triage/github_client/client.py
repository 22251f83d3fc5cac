"""GitHub API client using PyGitHub."""

import logging
import os
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

from github import Github
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Issue import Issue as GithubIssue
from github.IssueComment import IssueComment
from github.Repository import Repository
from pydantic import BaseModel

from ..errors import NotFound, RateLimited, TrackerError, Unauthorized
from ..store.models import Comment, LinkedPullRequest, TrackerIssue

logger = logging.getLogger(__name__)

T = TypeVar("T")

NEW_LABEL_COLOR = "e4e669"


class CreatedIssue(BaseModel):
    """Identity of an issue created through the client."""

    number: int
    url: str


class GitHubClient:
    """Repository-scoped GitHub client.

    Every call maps PyGitHub failures onto the typed ``TrackerError``
    hierarchy so callers can tell auth, rate-limit and not-found apart.
    """

    def __init__(self, owner: str, repo: str, token: str | None = None):
        """Initialize GitHub client with authentication.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            token: GitHub personal access token. If None, reads from
                GITHUB_TOKEN env var.
        """
        self.token = token or os.getenv("GITHUB_TOKEN")
        if not self.token:
            raise ValueError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable."
            )

        self.owner = owner
        self.repo = repo
        self.github = Github(self.token)
        self._repository: Repository | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _call(self, operation: Callable[[], T]) -> T:
        """Run a PyGitHub operation, translating its exceptions."""
        try:
            return operation()
        except BadCredentialsException as e:
            raise Unauthorized(
                "Invalid GitHub token. Check GITHUB_TOKEN env var."
            ) from e
        except RateLimitExceededException as e:
            raise RateLimited("GitHub API rate limit exceeded.") from e
        except UnknownObjectException as e:
            raise NotFound(
                f"Repo '{self.full_name}' or issue not found or inaccessible."
            ) from e
        except GithubException as e:
            if e.status == 401:
                raise Unauthorized(
                    "Invalid GitHub token. Check GITHUB_TOKEN env var."
                ) from e
            if e.status == 403:
                raise RateLimited(
                    "GitHub API rate limit exceeded or access forbidden."
                ) from e
            if e.status == 404:
                raise NotFound(
                    f"Repo '{self.full_name}' not found or inaccessible."
                ) from e
            raise TrackerError(f"GitHub API error ({e.status}): {e.data}") from e

    @property
    def repository(self) -> Repository:
        if self._repository is None:
            self._repository = self._call(lambda: self.github.get_repo(self.full_name))
        return self._repository

    def _convert_issue(self, github_issue: GithubIssue) -> TrackerIssue:
        """Convert PyGitHub issue to our record model."""
        reactions = 0
        raw_reactions = github_issue.raw_data.get("reactions")
        if isinstance(raw_reactions, dict):
            reactions = int(raw_reactions.get("total_count", 0))

        return TrackerIssue(
            number=github_issue.number,
            title=github_issue.title,
            body=github_issue.body or "",
            state="closed" if github_issue.state == "closed" else "open",
            labels=[label.name for label in github_issue.labels if label.name],
            assignees=[user.login for user in github_issue.assignees],
            author=github_issue.user.login if github_issue.user else "unknown",
            created_at=github_issue.created_at,
            updated_at=github_issue.updated_at,
            html_url=github_issue.html_url,
            comment_count=github_issue.comments,
            reactions=reactions,
        )

    def _convert_comment(self, github_comment: IssueComment) -> Comment:
        """Convert PyGitHub comment to our model."""
        return Comment(
            author=github_comment.user.login if github_comment.user else "unknown",
            body=github_comment.body or "",
            created_at=github_comment.created_at,
        )

    def _collect(self, issues: Iterable[GithubIssue]) -> list[TrackerIssue]:
        # The issues endpoint also returns pull requests
        return [
            self._convert_issue(issue) for issue in issues if issue.pull_request is None
        ]

    def fetch_all(self, include_closed: bool = False) -> list[TrackerIssue]:
        """Fetch every issue in the repository, oldest first."""
        state = "all" if include_closed else "open"
        records = self._call(
            lambda: self._collect(
                self.repository.get_issues(state=state, sort="created", direction="asc")
            )
        )
        logger.info("Fetched %d issues from %s", len(records), self.full_name)
        return records

    def fetch_since(
        self, since: datetime, include_closed: bool = False
    ) -> list[TrackerIssue]:
        """Fetch issues updated at or after ``since``."""
        state = "all" if include_closed else "open"
        records = self._call(
            lambda: self._collect(
                self.repository.get_issues(
                    state=state, since=since, sort="updated", direction="asc"
                )
            )
        )
        logger.info(
            "Fetched %d issues updated since %s from %s",
            len(records),
            since.isoformat(),
            self.full_name,
        )
        return records

    def fetch_comments(self, number: int) -> list[Comment]:
        """Fetch all comments of one issue in chronological order."""
        return self._call(
            lambda: [
                self._convert_comment(c)
                for c in self.repository.get_issue(number).get_comments()
            ]
        )

    def fetch_repo_labels(self) -> list[str]:
        """Names of all labels defined in the repository."""
        return self._call(lambda: [label.name for label in self.repository.get_labels()])

    def add_label(self, number: int, label: str) -> None:
        """Add a label to an issue, creating the label if it does not exist."""

        def _add() -> None:
            try:
                self.repository.get_label(label)
            except UnknownObjectException:
                logger.info("Creating missing label '%s' in %s", label, self.full_name)
                self.repository.create_label(label, NEW_LABEL_COLOR)
            self.repository.get_issue(number).add_to_labels(label)

        self._call(_add)

    def create_issue(self, title: str, body: str) -> CreatedIssue:
        issue = self._call(lambda: self.repository.create_issue(title=title, body=body))
        return CreatedIssue(number=issue.number, url=issue.html_url)

    def add_comment(self, number: int, body: str) -> None:
        self._call(lambda: self.repository.get_issue(number).create_comment(body))

    def close_issue(self, number: int) -> None:
        """Close an issue as completed."""
        self._call(
            lambda: self.repository.get_issue(number).edit(
                state="closed", state_reason="completed"
            )
        )

    def fetch_merged_prs(self, number: int) -> list[LinkedPullRequest]:
        """Merged pull requests that cross-reference an issue, first seen first."""

        def _fetch() -> list[LinkedPullRequest]:
            linked: dict[int, LinkedPullRequest] = {}
            for event in self.repository.get_issue(number).get_timeline():
                if event.event != "cross-referenced" or event.source is None:
                    continue
                source = event.source.issue
                if source is None or source.pull_request is None:
                    continue
                if source.number in linked or not source.as_pull_request().merged:
                    continue
                linked[source.number] = LinkedPullRequest(
                    number=source.number, title=source.title
                )
            return list(linked.values())

        prs = self._call(_fetch)
        logger.debug("#%d is referenced by %d merged PR(s)", number, len(prs))
        return prs
