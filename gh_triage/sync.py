"""Initialize and refresh the store from the issue tracker."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .store.change_detector import UpsertAction
from .errors import StoreAlreadyExists
from .store.manager import STORE_FILENAME, IssueStore
from .store.models import Comment, TrackerIssue

logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    def fetch_all(self, include_closed: bool = False) -> list[TrackerIssue]: ...

    def fetch_since(
        self, since: datetime, include_closed: bool = False
    ) -> list[TrackerIssue]: ...

    def fetch_comments(self, number: int) -> list[Comment]: ...


@dataclass
class SyncReport:
    """Counts produced by one sync run."""

    fetched: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    comments_refreshed: int = 0

    def record(self, action: UpsertAction) -> None:
        if action is UpsertAction.CREATED:
            self.created += 1
        elif action is UpsertAction.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1

    def summary(self) -> str:
        return f"{self.created} new, {self.updated} updated, {self.unchanged} unchanged"


def initialize_from_tracker(
    root: str | Path,
    tracker: IssueSource,
    owner: str,
    repo: str,
    include_closed: bool,
    now: datetime,
    force: bool = False,
    org_members: list[str] | None = None,
) -> tuple[IssueStore, SyncReport]:
    """Create a store and fill it with every issue in the repository.

    Raises:
        StoreAlreadyExists: If a store exists at ``root`` and ``force`` is False
        TrackerError: If fetching from the tracker fails, in which case nothing
            is written
    """
    if IssueStore.exists(root) and not force:
        raise StoreAlreadyExists(Path(root) / STORE_FILENAME)

    # Nothing is written until the tracker has answered
    records = tracker.fetch_all(include_closed=include_closed)
    store = IssueStore.initialize(root, owner, repo, force=force)

    report = SyncReport(fetched=len(records))
    for record in records:
        report.record(store.upsert_issue(record))

    store.update_meta(
        last_synced_at=now,
        total_fetched=len(records),
        org_members=org_members or [],
    )
    store.save()

    report.comments_refreshed = refresh_comments(store, tracker, now)
    return store, report


def refresh_comments(store: IssueStore, tracker: IssueSource, now: datetime) -> int:
    """Fetch comments for issues whose stored comments are missing or stale.

    Returns:
        Number of issues whose comments were refreshed
    """
    stale = [
        issue
        for issue in store.get_issues()
        if issue.comment_count > 0
        and (
            issue.comments_fetched_at is None
            or len(issue.comments) != issue.comment_count
        )
    ]
    if not stale:
        return 0

    logger.info("Fetching comments for %d issue(s)", len(stale))
    refreshed = 0
    try:
        for issue in stale:
            store.set_comments(issue.number, tracker.fetch_comments(issue.number), now)
            refreshed += 1
    finally:
        if refreshed < len(stale):
            logger.warning(
                "Comment refresh stopped after %d of %d issue(s)", refreshed, len(stale)
            )
        store.save()
    return refreshed


def sync_store(
    store: IssueStore, tracker: IssueSource, include_closed: bool, now: datetime
) -> SyncReport:
    """Pull tracker changes into an existing store.

    Only issues updated since the last sync are fetched when a previous
    sync time is known.

    Raises:
        TrackerError: If fetching from the tracker fails
    """
    meta = store.get_meta()
    if meta.last_synced_at is not None:
        records = tracker.fetch_since(meta.last_synced_at, include_closed=include_closed)
    else:
        records = tracker.fetch_all(include_closed=include_closed)

    report = SyncReport(fetched=len(records))
    for record in records:
        report.record(store.upsert_issue(record))

    store.update_meta(
        last_synced_at=now, total_fetched=meta.total_fetched + len(records)
    )
    store.save()
    logger.info("Synced %s/%s: %s", meta.owner, meta.repo, report.summary())

    report.comments_refreshed = refresh_comments(store, tracker, now)
    return report
