"""Push analysis results back to the tracker."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .analyses.done import ResolvedIssue
from .analyses.good_first_issue import GOOD_FIRST_ISSUE_LABEL, GoodFirstIssueSuggestion
from .analyses.labels import LabelSuggestion
from .analyses.missing_info import MissingInfoFinding
from .analyses.quality import QualityFlagged
from .analyses.security import SECURITY_LABEL, SecurityFinding
from .store.manager import IssueStore

logger = logging.getLogger(__name__)


class IssueWriter(Protocol):
    def add_label(self, number: int, label: str) -> None: ...

    def add_comment(self, number: int, body: str) -> None: ...

    def close_issue(self, number: int) -> None: ...


def apply_label_suggestions(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[LabelSuggestion],
    now: datetime,
) -> int:
    """Add every suggested label and record when it was applied.

    The store is saved even when a tracker call fails part-way, so labels
    already applied stay recorded.

    Returns:
        Number of issues updated
    """
    applied = 0
    try:
        for item in items:
            for label in item.suggested_labels:
                tracker.add_label(item.number, label)
            store.set_analysis(item.number, "labels", applied_at=now)
            applied += 1
            logger.info("Labeled #%d with %s", item.number, item.suggested_labels)
    finally:
        store.save()
    return applied


def post_missing_info_comments(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[MissingInfoFinding],
    now: datetime,
) -> int:
    """Post each drafted request for information as an issue comment.

    Returns:
        Number of comments posted
    """
    posted = 0
    try:
        for item in items:
            if not item.suggested_comment:
                continue
            tracker.add_comment(item.number, item.suggested_comment)
            store.set_analysis(item.number, "missing_info", posted_at=now)
            posted += 1
    finally:
        store.save()
    return posted


def apply_quality_labels(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[QualityFlagged],
    now: datetime,
) -> int:
    """Label low-quality issues with their suggested label.

    Returns:
        Number of issues labeled
    """
    applied = 0
    try:
        for item in items:
            tracker.add_label(item.number, item.suggested_label)
            store.set_analysis(item.number, "quality", applied_at=now)
            applied += 1
    finally:
        store.save()
    return applied


def apply_good_first_issue_labels(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[GoodFirstIssueSuggestion],
    now: datetime,
) -> int:
    """Label newcomer-friendly issues ``good first issue``.

    Returns:
        Number of issues labeled
    """
    applied = 0
    try:
        for item in items:
            tracker.add_label(item.number, GOOD_FIRST_ISSUE_LABEL)
            store.set_analysis(item.number, "good_first_issue", applied_at=now)
            applied += 1
    finally:
        store.save()
    return applied


def apply_security_labels(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[SecurityFinding],
    now: datetime,
) -> int:
    """Label flagged issues ``security``.

    Returns:
        Number of issues labeled
    """
    applied = 0
    try:
        for item in items:
            tracker.add_label(item.number, SECURITY_LABEL)
            store.set_analysis(item.number, "security", applied_at=now)
            applied += 1
    finally:
        store.save()
    return applied


def close_resolved_issues(
    store: IssueStore,
    tracker: IssueWriter,
    items: Sequence[ResolvedIssue],
    now: datetime,
) -> int:
    """Post the drafted closing comment on each resolved issue and close it.

    Issues without a drafted comment are closed without one.

    Returns:
        Number of issues closed
    """
    closed = 0
    try:
        for item in items:
            if item.draft_comment:
                tracker.add_comment(item.number, item.draft_comment)
            tracker.close_issue(item.number)
            store.set_analysis(item.number, "done", closed_at=now)
            closed += 1
            logger.info("Closed #%d as resolved", item.number)
    finally:
        store.save()
    return closed
