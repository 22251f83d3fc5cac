"""Tests for pushing analysis results to the tracker."""

from unittest.mock import Mock

import pytest
from conftest import FakeTracker, make_record

from gh_triage.analyses.done import ResolvedIssue
from gh_triage.analyses.good_first_issue import GoodFirstIssueSuggestion
from gh_triage.analyses.labels import LabelSuggestion
from gh_triage.analyses.missing_info import MissingInfoFinding
from gh_triage.analyses.quality import QualityFlagged
from gh_triage.analyses.security import SecurityFinding
from gh_triage.apply import (
    apply_good_first_issue_labels,
    apply_label_suggestions,
    apply_quality_labels,
    apply_security_labels,
    close_resolved_issues,
    post_missing_info_comments,
)
from gh_triage.errors import RateLimited
from gh_triage.store.manager import IssueStore
from gh_triage.store.models import LinkedPullRequest


def suggestion(number: int, *labels: str) -> LabelSuggestion:
    return LabelSuggestion(
        number=number,
        title=f"Issue {number}",
        html_url="",
        suggested_labels=list(labels),
        reason="r",
    )


class TestApplyLabels:
    """Test apply_label_suggestions."""

    def test_labels_are_added_and_recorded(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        tracker = FakeTracker()

        count = apply_label_suggestions(
            store, tracker, [suggestion(1, "bug", "ui")], now
        )

        assert count == 1
        assert tracker.added_labels == [(1, "bug"), (1, "ui")]
        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(1).analysis.labels.applied_at == now

    def test_partial_failure_keeps_applied_records(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2))
        tracker = FakeTracker()
        tracker.add_label = Mock(side_effect=[None, RateLimited("slow down")])

        with pytest.raises(RateLimited):
            apply_label_suggestions(
                store, tracker, [suggestion(1, "bug"), suggestion(2, "ui")], now
            )

        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(1).analysis.labels.applied_at == now
        assert saved.get_issue(2).analysis.labels is None


class TestMissingInfoComments:
    """Test post_missing_info_comments."""

    def test_empty_comments_are_skipped(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2))
        tracker = FakeTracker()
        items = [
            MissingInfoFinding(number=1, title="", html_url="", suggested_comment="Version?"),
            MissingInfoFinding(number=2, title="", html_url="", suggested_comment=""),
        ]

        count = post_missing_info_comments(store, tracker, items, now)

        assert count == 1
        assert tracker.added_comments == [(1, "Version?")]
        assert store.get_issue(1).analysis.missing_info.posted_at == now
        assert store.get_issue(2).analysis.missing_info is None


class TestQualityLabels:
    """Test apply_quality_labels."""

    def test_suggested_label_is_applied(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        tracker = FakeTracker()
        items = [
            QualityFlagged(
                number=1, title="", html_url="", flag="spam", suggested_label="invalid"
            )
        ]

        assert apply_quality_labels(store, tracker, items, now) == 1
        assert tracker.added_labels == [(1, "invalid")]
        assert store.get_issue(1).analysis.quality.applied_at == now


class TestNewcomerAndSecurityLabels:
    """Test apply_good_first_issue_labels and apply_security_labels."""

    def test_good_first_issue_label(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        tracker = FakeTracker()
        items = [GoodFirstIssueSuggestion(number=1, title="", html_url="")]

        assert apply_good_first_issue_labels(store, tracker, items, now) == 1
        assert tracker.added_labels == [(1, "good first issue")]
        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(1).analysis.good_first_issue.applied_at == now

    def test_security_label(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        tracker = FakeTracker()
        items = [SecurityFinding(number=1, title="", html_url="", severity="high")]

        assert apply_security_labels(store, tracker, items, now) == 1
        assert tracker.added_labels == [(1, "security")]
        assert store.get_issue(1).analysis.security.applied_at == now


class TestCloseResolved:
    """Test close_resolved_issues."""

    def test_comment_then_close(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2))
        tracker = FakeTracker()
        prs = [LinkedPullRequest(number=30, title="Fix #1")]
        items = [
            ResolvedIssue(
                number=1,
                title="",
                html_url="",
                draft_comment="Fixed by #30, closing.",
                merged_prs=prs,
            ),
            ResolvedIssue(number=2, title="", html_url="", merged_prs=prs),
        ]

        count = close_resolved_issues(store, tracker, items, now)

        assert count == 2
        assert tracker.added_comments == [(1, "Fixed by #30, closing.")]
        assert tracker.closed == [1, 2]
        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(2).analysis.done.closed_at == now

    def test_failure_keeps_issues_already_closed(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2))
        tracker = FakeTracker()
        tracker.close_issue = Mock(side_effect=[None, RateLimited("slow down")])
        items = [
            ResolvedIssue(number=1, title="", html_url=""),
            ResolvedIssue(number=2, title="", html_url=""),
        ]

        with pytest.raises(RateLimited):
            close_resolved_issues(store, tracker, items, now)

        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(1).analysis.done.closed_at == now
        assert saved.get_issue(2).analysis.done is None
