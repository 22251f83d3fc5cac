"""Detect whether an incoming tracker record is new, changed, or unchanged."""

import hashlib
from enum import Enum

from .models import Issue, TrackerIssue

# Tracker fields that do not feed the content fingerprint.
METADATA_FIELDS = (
    "state",
    "labels",
    "assignees",
    "author",
    "created_at",
    "updated_at",
    "html_url",
    "comment_count",
    "reactions",
)


class UpsertAction(str, Enum):
    """Outcome of applying a tracker record to the store."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def content_fingerprint(title: str, body: str) -> str:
    """Deterministic SHA-256 hex digest of an issue's title and body."""
    return hashlib.sha256(f"{title}\n{body}".encode()).hexdigest()


def build_issue(record: TrackerIssue) -> Issue:
    """Create a fresh store issue from a tracker record."""
    return Issue(
        **record.model_dump(),
        content_fingerprint=content_fingerprint(record.title, record.body),
    )


def detect_change(existing: Issue | None, record: TrackerIssue) -> UpsertAction:
    """Classify a tracker record against the stored issue.

    Args:
        existing: Issue currently in the store, or None
        record: Incoming tracker record with the same number

    Returns:
        The action ``apply_change`` would perform
    """
    if existing is None:
        return UpsertAction.CREATED

    if existing.content_fingerprint != content_fingerprint(record.title, record.body):
        return UpsertAction.UPDATED

    for field in METADATA_FIELDS:
        if getattr(existing, field) != getattr(record, field):
            return UpsertAction.UPDATED

    return UpsertAction.UNCHANGED


def apply_change(existing: Issue, record: TrackerIssue) -> UpsertAction:
    """Update ``existing`` in place from ``record`` and report what happened.

    A content edit overwrites every tracker field and the fingerprint and
    drops the digest so it is regenerated for the new text. Analysis
    results are kept; each analysis kind decides its own freshness policy.
    """
    action = detect_change(existing, record)
    if action is UpsertAction.UNCHANGED:
        return action

    fingerprint = content_fingerprint(record.title, record.body)
    if fingerprint != existing.content_fingerprint:
        existing.title = record.title
        existing.body = record.body
        existing.content_fingerprint = fingerprint
        existing.digest = None

    values = record.model_dump(include=set(METADATA_FIELDS))
    for field, value in values.items():
        setattr(existing, field, value)

    return action
