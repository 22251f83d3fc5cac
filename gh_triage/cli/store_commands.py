"""CLI commands that create, refresh and inspect the issue store."""

import asyncio
from datetime import UTC, datetime

from rich.table import Table

from ..ai.digest import generate_digests
from ..config import Settings
from ..errors import TriageError
from ..store.manager import IssueStore
from ..store.models import DIMENSIONS
from ..sync import initialize_from_tracker, sync_store
from .common import (
    console,
    fail,
    make_classifier,
    make_client,
    open_store,
    settings_or_exit,
)
from .options import (
    CONFIG_OPTION,
    FORCE_OPTION,
    INCLUDE_CLOSED_OPTION,
    NO_DIGEST_OPTION,
    ORG_MEMBER_OPTION,
    OWNER_OPTION,
    REPO_OPTION,
)


def _digest(store: IssueStore, settings: Settings, now: datetime) -> None:
    pending = len(store.get_issues(has_digest=False))
    if not pending:
        return
    console.print(f"🧠 [blue]Generating digests for {pending} issue(s)...[/blue]")
    digested = asyncio.run(
        generate_digests(
            store, make_classifier(settings), settings.sync.digest_batch_size, now
        )
    )
    console.print(f"✅ [green]Digested {digested} issue(s)[/green]")
    if digested < pending:
        console.print(
            f"⚠️  [yellow]{pending - digested} issue(s) still need a digest; "
            "they will be retried on the next sync[/yellow]"
        )


def init(
    owner: str = OWNER_OPTION,
    repo: str = REPO_OPTION,
    include_closed: bool | None = INCLUDE_CLOSED_OPTION,
    no_digest: bool = NO_DIGEST_OPTION,
    force: bool = FORCE_OPTION,
    org_member: list[str] | None = ORG_MEMBER_OPTION,
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Create the local store and mirror every issue of a repository.

    Examples:
        gh-triage init --owner myorg --repo myrepo
        gh-triage init -o myorg -r myrepo --include-closed -m alice -m bob
    """
    settings = settings_or_exit(config_file)
    if include_closed is None:
        include_closed = settings.sync.include_closed
    client = make_client(settings, owner, repo)
    now = datetime.now(UTC)

    console.print(f"🔍 Fetching issues from {owner}/{repo}")
    try:
        store, report = initialize_from_tracker(
            settings.store.path,
            client,
            owner,
            repo,
            include_closed=include_closed,
            now=now,
            force=force,
            org_members=org_member,
        )
    except TriageError as e:
        fail(str(e))

    console.print(
        f"✅ [green]Stored {report.fetched} issue(s) in {store.file_path}[/green]"
    )
    if report.comments_refreshed:
        console.print(f"💬 Fetched comments for {report.comments_refreshed} issue(s)")

    if not no_digest:
        _digest(store, settings, now)


def sync(
    include_closed: bool | None = INCLUDE_CLOSED_OPTION,
    no_digest: bool = NO_DIGEST_OPTION,
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Pull new and changed issues from GitHub into the store."""
    settings = settings_or_exit(config_file)
    store = open_store(settings)
    meta = store.get_meta()
    if include_closed is None:
        include_closed = settings.sync.include_closed
    client = make_client(settings, meta.owner, meta.repo)
    now = datetime.now(UTC)

    console.print(f"🔄 Syncing {meta.owner}/{meta.repo}")
    try:
        report = sync_store(store, client, include_closed, now)
    except TriageError as e:
        fail(str(e))

    console.print(
        f"✅ [green]Fetched {report.fetched} issue(s): {report.summary()}[/green]"
    )
    if report.comments_refreshed:
        console.print(f"💬 Fetched comments for {report.comments_refreshed} issue(s)")

    if not no_digest:
        _digest(store, settings, now)


def status(config_file: str | None = CONFIG_OPTION) -> None:
    """Show store contents and how far each analysis has progressed."""
    settings = settings_or_exit(config_file)
    store = open_store(settings)
    meta = store.get_meta()
    open_issues = store.get_issues(state="open")

    table = Table(title=f"Issue Store: {meta.owner}/{meta.repo}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total issues", str(len(store)))
    table.add_row("Open", str(len(open_issues)))
    table.add_row("Closed", str(len(store.get_issues(state="closed"))))
    table.add_row("Digested", str(len(store.get_issues(has_digest=True))))
    table.add_row(
        "Last synced",
        meta.last_synced_at.isoformat() if meta.last_synced_at else "never",
    )
    table.add_row("Location", str(store.file_path))
    console.print(table)

    analysis_table = Table(title="Analysis Progress (open issues)")
    analysis_table.add_column("Dimension", style="cyan")
    analysis_table.add_column("Analyzed", style="green")
    analysis_table.add_column("Pending", style="yellow")
    for dimension in DIMENSIONS:
        analyzed = sum(1 for i in open_issues if i.analyzed_at(dimension) is not None)
        analysis_table.add_row(
            dimension.replace("_", "-"), str(analyzed), str(len(open_issues) - analyzed)
        )
    console.print(analysis_table)
