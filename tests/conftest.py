"""Test configuration and fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel

from gh_triage.store.manager import IssueStore
from gh_triage.store.models import Comment, IssueDigest, LinkedPullRequest, TrackerIssue

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_record(number: int, **overrides: Any) -> TrackerIssue:
    """Build a tracker record with sensible defaults."""
    fields: dict[str, Any] = {
        "number": number,
        "title": f"Issue {number}",
        "body": f"Body of issue {number}",
        "state": "open",
        "labels": [],
        "assignees": [],
        "author": "reporter",
        "created_at": NOW - timedelta(days=30),
        "updated_at": NOW - timedelta(days=1),
        "html_url": f"https://github.com/acme/widgets/issues/{number}",
        "comment_count": 0,
        "reactions": 0,
    }
    fields.update(overrides)
    return TrackerIssue(**fields)


def make_digest(category: str = "bug", **overrides: Any) -> IssueDigest:
    fields: dict[str, Any] = {
        "summary": "Something is broken",
        "category": category,
        "affected_area": "api",
        "keywords": ["api", "error"],
        "digested_at": NOW - timedelta(hours=1),
    }
    fields.update(overrides)
    return IssueDigest(**fields)


def make_comment(author: str, body: str, days_ago: int = 1) -> Comment:
    return Comment(author=author, body=body, created_at=NOW - timedelta(days=days_ago))


class ScriptedClassifier:
    """Classifier double returning queued responses in call order.

    A queued exception is raised instead of returned.
    """

    def __init__(self, *responses: BaseModel | BaseException | None):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.models: list[type[BaseModel]] = []

    async def analyze(
        self, prompt: str, response_model: type[BaseModel]
    ) -> BaseModel | None:
        self.prompts.append(prompt)
        self.models.append(response_model)
        if not self.responses:
            raise AssertionError("Classifier called more times than scripted")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeTracker:
    """In-memory stand-in for the GitHub client."""

    def __init__(
        self,
        records: list[TrackerIssue] | None = None,
        labels: list[str] | None = None,
        comments: dict[int, list[Comment]] | None = None,
    ):
        self.records = records or []
        self.labels = labels if labels is not None else []
        self.comments = comments or {}
        self.added_labels: list[tuple[int, str]] = []
        self.added_comments: list[tuple[int, str]] = []
        self.since_calls: list[datetime] = []
        self.comment_fetches: list[int] = []
        self.label_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.comment_errors: dict[int, Exception] = {}
        self.merged_prs: dict[int, list[LinkedPullRequest]] = {}
        self.pr_fetches: list[int] = []
        self.closed: list[int] = []

    def fetch_all(self, include_closed: bool = False) -> list[TrackerIssue]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return [r for r in self.records if include_closed or r.state == "open"]

    def fetch_since(
        self, since: datetime, include_closed: bool = False
    ) -> list[TrackerIssue]:
        self.since_calls.append(since)
        return [
            r
            for r in self.fetch_all(include_closed)
            if r.updated_at >= since
        ]

    def fetch_comments(self, number: int) -> list[Comment]:
        self.comment_fetches.append(number)
        if number in self.comment_errors:
            raise self.comment_errors[number]
        return self.comments.get(number, [])

    def fetch_repo_labels(self) -> list[str]:
        if self.label_error is not None:
            raise self.label_error
        return self.labels

    def add_label(self, number: int, label: str) -> None:
        self.added_labels.append((number, label))

    def add_comment(self, number: int, body: str) -> None:
        self.added_comments.append((number, body))

    def fetch_merged_prs(self, number: int) -> list[LinkedPullRequest]:
        self.pr_fetches.append(number)
        return self.merged_prs.get(number, [])

    def close_issue(self, number: int) -> None:
        self.closed.append(number)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / ".issue-store"


@pytest.fixture
def store(store_root: Path) -> IssueStore:
    """Empty saved store for acme/widgets."""
    return IssueStore.initialize(store_root, "acme", "widgets")


@pytest.fixture
def populated_store(store: IssueStore) -> Callable[..., IssueStore]:
    """Factory adding open, digested issues to the store and saving it."""

    def _populate(*numbers: int, category: str = "bug") -> IssueStore:
        for number in numbers:
            store.upsert_issue(make_record(number))
            store.set_digest(number, make_digest(category))
        store.save()
        return store

    return _populate
