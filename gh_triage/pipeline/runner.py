"""Generic batched runner shared by every analysis kind."""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..errors import TriageError
from ..store.manager import IssueStore
from ..store.models import Issue
from ..utils.batching import chunk
from .base import AnalysisKind, Classifier, Finding

logger = logging.getLogger(__name__)


class RunOutcome(str, Enum):
    NO_CANDIDATES = "no_candidates"
    PRECONDITION_FAILED = "precondition_failed"
    NO_FINDINGS = "no_findings"
    FINDINGS = "findings"


@dataclass
class AnalysisResult:
    """Outcome of running one analysis kind over the store."""

    kind: str
    outcome: RunOutcome
    store: IssueStore
    items: list[Any] = field(default_factory=list)
    message: str | None = None
    candidate_count: int = 0
    batch_count: int = 0
    failed_batches: int = 0
    dry_run: bool = False

    def summary(self) -> str:
        """One line describing what happened, suitable for the CLI."""
        if self.outcome in (RunOutcome.NO_CANDIDATES, RunOutcome.PRECONDITION_FAILED):
            return self.message or ""

        if self.batch_count and self.failed_batches == self.batch_count:
            text = (
                f"All {self.batch_count} batch(es) failed. {self.candidate_count} "
                "issue(s) were left unchecked and will be retried on the next run."
            )
            if self.dry_run:
                text += " Dry run: nothing was saved."
            return text

        if self.outcome is RunOutcome.NO_FINDINGS:
            text = f"Checked {self.candidate_count} issue(s). {self.message}"
        else:
            text = (
                f"{len(self.items)} finding(s) across "
                f"{self.candidate_count} checked issue(s)."
            )
        if self.failed_batches:
            text += (
                f" {self.failed_batches} of {self.batch_count} batch(es) failed "
                "and will be retried on the next run."
            )
        if self.dry_run:
            text += " Dry run: nothing was saved."
        return text


@dataclass
class RunAllReport:
    """Results of a multi-kind run, keyed by kind command name."""

    results: dict[str, AnalysisResult] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)
    excluded: set[int] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return not self.errors


def flagged_for_closing(store: IssueStore) -> set[int]:
    """Open issues a close-detection analysis has marked for closing.

    That is a recorded duplicate, or a done detection backed by merged PRs.
    """
    flagged = set()
    for issue in store.get_issues(state="open"):
        duplicates = issue.analysis.duplicates
        done = issue.analysis.done
        if duplicates is not None and duplicates.duplicate_of is not None:
            flagged.add(issue.number)
        elif done is not None and done.done_detected:
            flagged.add(issue.number)
    return flagged


class AnalysisPipeline:
    """Run analysis kinds over a store in checkpointed batches.

    Batches run sequentially. Each successful batch is saved before the
    next one starts, so an interrupted run loses at most the batch in
    flight.
    """

    def __init__(self, store: IssueStore, classifier: Classifier):
        self.store = store
        self.classifier = classifier

    async def run(
        self,
        kind: AnalysisKind[Any, Finding],
        *,
        recheck: bool = False,
        dry_run: bool = False,
        now: datetime | None = None,
        exclude: Iterable[int] | None = None,
    ) -> AnalysisResult:
        """Analyze every pending candidate of ``kind``.

        Args:
            kind: The analysis to run
            recheck: Re-analyze the full population, not just pending issues
            dry_run: Mutate memory only, never save
            now: Timestamp recorded on every result of this run
            exclude: Issue numbers to leave out of the candidate set

        Returns:
            The run outcome together with its findings

        Raises:
            TrackerError: If resolving the kind's preconditions fails
        """
        now = now or datetime.now(UTC)
        excluded = set(exclude or ())

        candidates = [
            issue
            for issue in kind.candidates(self.store, recheck, now)
            if issue.number not in excluded
        ]
        if not candidates:
            return AnalysisResult(
                kind=kind.command,
                outcome=RunOutcome.NO_CANDIDATES,
                store=self.store,
                message=kind.done_message,
                dry_run=dry_run,
            )

        precondition = await kind.prepare(self.store)
        if precondition is not None:
            return AnalysisResult(
                kind=kind.command,
                outcome=RunOutcome.PRECONDITION_FAILED,
                store=self.store,
                message=precondition,
                candidate_count=len(candidates),
                dry_run=dry_run,
            )

        batches = chunk(candidates, kind.batch_size)
        findings: list[Finding] = []
        failed = 0
        for index, batch in enumerate(batches, start=1):
            logger.info(
                "%s: batch %d/%d (%d issues)", kind.title, index, len(batches), len(batch)
            )
            batch_findings = await self._run_batch(kind, batch, now)
            if batch_findings is None:
                failed += 1
                continue
            findings.extend(batch_findings)
            if not dry_run:
                self.store.save()

        findings = kind.finalize(findings)
        return AnalysisResult(
            kind=kind.command,
            outcome=RunOutcome.FINDINGS if findings else RunOutcome.NO_FINDINGS,
            store=self.store,
            items=findings,
            message=None if findings else kind.no_findings_message,
            candidate_count=len(candidates),
            batch_count=len(batches),
            failed_batches=failed,
            dry_run=dry_run,
        )

    async def _run_batch(
        self, kind: AnalysisKind[Any, Finding], batch: list[Issue], now: datetime
    ) -> list[Finding] | None:
        """Classify and record one batch.

        Returns:
            The batch findings, or None if the batch was abandoned
        """
        try:
            response = await kind.classify(self.classifier, batch)
        except Exception:
            logger.warning(
                "%s: batch of %d failed, leaving issues unmarked",
                kind.title,
                len(batch),
                exc_info=True,
            )
            return None
        if response is None:
            logger.warning(
                "%s: no valid response for batch of %d, leaving issues unmarked",
                kind.title,
                len(batch),
            )
            return None

        findings: list[Finding] = []
        returned: set[int] = set()
        for item in kind.result_items(response):
            issue = self.store.get_issue(item.number)
            if issue is None:
                logger.debug("%s: ignoring result for unknown #%d", kind.title, item.number)
                continue
            returned.add(item.number)
            finding = kind.apply(self.store, issue, item, now)
            if finding is not None:
                findings.append(finding)

        for issue in batch:
            if issue.number not in returned:
                kind.mark_analyzed(self.store, issue, now)
        return findings

    async def run_all(
        self,
        kinds: Sequence[AnalysisKind[Any, Finding]],
        *,
        recheck: bool = False,
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> RunAllReport:
        """Run several kinds, close detection first.

        Open issues flagged for closing by a close-detection kind are
        excluded from every enrichment kind that follows. A kind that fails
        with any ``Exception`` is reported and the rest still run.
        """
        now = now or datetime.now(UTC)
        report = RunAllReport()
        closers = [k for k in kinds if k.closes_issues]
        enrichers = [k for k in kinds if not k.closes_issues]

        for kind in closers:
            await self._run_reported(report, kind, recheck, dry_run, now, None)

        report.excluded = flagged_for_closing(self.store)
        if report.excluded:
            logger.info(
                "Skipping %d issue(s) flagged for closing", len(report.excluded)
            )

        for kind in enrichers:
            await self._run_reported(
                report, kind, recheck, dry_run, now, report.excluded
            )
        return report

    async def _run_reported(
        self,
        report: RunAllReport,
        kind: AnalysisKind[Any, Finding],
        recheck: bool,
        dry_run: bool,
        now: datetime,
        exclude: set[int] | None,
    ) -> None:
        try:
            report.results[kind.command] = await self.run(
                kind, recheck=recheck, dry_run=dry_run, now=now, exclude=exclude
            )
        except Exception as e:
            # unexpected errors get a traceback, tracker and store errors do not
            logger.error(
                "%s failed: %s", kind.title, e, exc_info=not isinstance(e, TriageError)
            )
            report.errors[kind.command] = e
