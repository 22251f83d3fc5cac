"""CLI commands that run analyses over the store."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import typer
from rich.markup import escape
from rich.table import Table

from ..analyses import NEEDS_TRACKER, available_kinds, get_kind
from ..apply import (
    apply_good_first_issue_labels,
    apply_label_suggestions,
    apply_quality_labels,
    apply_security_labels,
    close_resolved_issues,
    post_missing_info_comments,
)
from ..config import Settings
from ..errors import TriageError
from ..github_client.client import GitHubClient
from ..pipeline.base import AnalysisKind
from ..pipeline.runner import AnalysisPipeline, AnalysisResult, RunOutcome
from ..store.manager import IssueStore
from .common import console, fail, make_classifier, open_store, settings_or_exit
from .options import APPLY_OPTION, CONFIG_OPTION, DRY_RUN_OPTION, RECHECK_OPTION

logger = logging.getLogger(__name__)

APPLIERS = {
    "labels": (apply_label_suggestions, "Applied labels to"),
    "quality": (apply_quality_labels, "Labeled"),
    "missing-info": (post_missing_info_comments, "Posted comments on"),
    "good-first-issue": (apply_good_first_issue_labels, "Labeled"),
    "security": (apply_security_labels, "Labeled"),
    "done-detector": (close_resolved_issues, "Closed"),
}


def print_result(result: AnalysisResult) -> None:
    """Render one analysis result as a table plus a summary line."""
    if result.outcome is RunOutcome.PRECONDITION_FAILED:
        console.print(f"⚠️  [yellow]{result.summary()}[/yellow]")
        return
    if result.outcome is not RunOutcome.FINDINGS:
        console.print(f"✅ [green]{result.summary()}[/green]")
        return

    table = Table(title=result.kind)
    table.add_column("Issue", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Result", style="green")
    for finding in result.items:
        table.add_row(
            f"#{finding.number}", escape(finding.title), escape(finding.describe())
        )
    console.print(table)
    console.print(f"📊 {result.summary()}")


def _client(settings: Settings, store: IssueStore) -> GitHubClient | None:
    meta = store.get_meta()
    try:
        return GitHubClient(meta.owner, meta.repo, settings.github.token)
    except ValueError as e:
        logger.warning("GitHub client unavailable: %s", e)
        return None


def _apply(
    result: AnalysisResult, store: IssueStore, client: GitHubClient | None
) -> None:
    entry = APPLIERS.get(result.kind)
    if entry is None:
        console.print(f"⚠️  [yellow]--apply is not supported for {result.kind}[/yellow]")
        return
    if result.dry_run:
        console.print("⚠️  [yellow]--apply is ignored in dry-run mode[/yellow]")
        return
    if not result.items:
        return
    if client is None:
        fail("GitHub token is required. Set GITHUB_TOKEN environment variable.")

    applier, verb = entry
    try:
        count = applier(store, client, result.items, datetime.now(UTC))
    except TriageError as e:
        fail(str(e))
    console.print(f"✅ [green]{verb} {count} issue(s)[/green]")


def run(
    kind: str = typer.Argument(..., help=f"Analysis to run: {', '.join(available_kinds())}"),
    recheck: bool = RECHECK_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    apply: bool = APPLY_OPTION,
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Run one analysis over the store.

    Examples:
        gh-triage run priority
        gh-triage run labels --apply
        gh-triage run duplicates --recheck --dry-run
    """
    if kind not in available_kinds():
        fail(f"Unknown analysis '{kind}'. Available: {', '.join(available_kinds())}")

    settings = settings_or_exit(config_file)
    store = open_store(settings)
    needs_client = kind in NEEDS_TRACKER
    client = _client(settings, store) if needs_client or apply else None
    if needs_client and client is None:
        fail("GitHub token is required. Set GITHUB_TOKEN environment variable.")

    pipeline = AnalysisPipeline(store, make_classifier(settings))
    analysis = get_kind(kind, settings, client)
    console.print(f"🔍 [blue]{analysis.title}[/blue]")
    try:
        result = asyncio.run(pipeline.run(analysis, recheck=recheck, dry_run=dry_run))
    except TriageError as e:
        fail(str(e))

    print_result(result)
    if apply:
        _apply(result, store, client)


def run_all(
    recheck: bool = RECHECK_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    config_file: str | None = CONFIG_OPTION,
) -> None:
    """Run every analysis, close detection first.

    Issues flagged as duplicates or as already resolved are skipped by the
    analyses that follow.
    """
    settings = settings_or_exit(config_file)
    store = open_store(settings)
    client = _client(settings, store)

    kinds: list[AnalysisKind[Any, Any]] = []
    for name in available_kinds():
        if name in NEEDS_TRACKER and client is None:
            console.print(f"⚠️  [yellow]Skipping {name}: no GitHub token[/yellow]")
            continue
        kinds.append(get_kind(name, settings, client))

    pipeline = AnalysisPipeline(store, make_classifier(settings))
    report = asyncio.run(pipeline.run_all(kinds, recheck=recheck, dry_run=dry_run))

    if report.excluded:
        console.print(
            f"🚫 Skipped {len(report.excluded)} issue(s) flagged for closing"
        )
    for result in report.results.values():
        console.print(f"\n[bold]{result.kind}[/bold]")
        print_result(result)
    for name, error in report.errors.items():
        console.print(f"[red]❌ {name}: {escape(str(error))}[/red]")

    if not report.ok:
        raise typer.Exit(1)
