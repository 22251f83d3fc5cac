"""Triage open issues that have been inactive for a long time."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from ..ai.prompt_formatting import format_comments_for_prompt, labels_suffix
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, StaleAction

ACTION_ORDER: tuple[StaleAction, ...] = (
    "close-resolved",
    "close-wontfix",
    "label-stale",
    "keep-open",
)


class StaleItem(BaseModel):
    number: int
    action: StaleAction
    reason: str
    draft_comment: str = ""


class StaleResponse(BaseModel):
    results: list[StaleItem]


@dataclass
class StaleIssue(Finding):
    days_inactive: int = 0
    action: StaleAction = "keep-open"
    reason: str = ""
    draft_comment: str = ""

    def describe(self) -> str:
        return f"[{self.action}] {self.days_inactive}d inactive: {self.reason}"


def days_inactive(issue: Issue, now: datetime) -> int:
    return (now - issue.updated_at).days


class StaleKind(AnalysisKind[StaleItem, StaleIssue]):
    name = "stale"
    command = "stale"
    title = "Stale issues"
    response_model = StaleResponse
    done_message = "All stale issues already analyzed. Use --recheck to re-run."
    no_findings_message = "No stale issues need action."
    rechecks_on_new_comments = True

    def __init__(self, batch_size: int, days_threshold: int, close_days: int):
        super().__init__(batch_size)
        self.days_threshold = days_threshold
        self.close_days = close_days
        self.closed: list[Issue] = []
        self._now: datetime | None = None

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        self._now = now
        return [
            issue
            for issue in store.get_issues(state="open", has_digest=True)
            if days_inactive(issue, now) >= self.days_threshold
        ]

    async def prepare(self, store: IssueStore) -> str | None:
        self.closed = store.get_issues(state="closed", has_digest=True)
        return None

    def _format_candidate(self, issue: Issue) -> str:
        d = issue.digest
        assert d is not None and self._now is not None
        text = f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Category: {d.category} | Area: {d.affected_area} | Days inactive: {days_inactive(issue, self._now)}
Summary: {d.summary}
Comments: {issue.comment_count} | Reactions: {issue.reactions}"""
        comments = format_comments_for_prompt(
            issue.comments, max_comments=5, max_chars_per_comment=300, max_total_chars=2000
        )
        return f"{text}\n{comments}" if comments else text

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(self._format_candidate(i) for i in batch)
        closed_section = ""
        if self.closed:
            closed_lines = "\n".join(
                f"  #{i.number}: {i.title} ({i.digest.summary if i.digest else i.title})"
                for i in self.closed
            )
            closed_section = (
                f"\nRECENTLY CLOSED ISSUES (use for cross-referencing):\n{closed_lines}\n"
            )
        return f"""You are triaging stale GitHub issues with no activity for a long time. Decide the best action for each.

OPTIONS:
- "close-resolved": likely fixed elsewhere or no longer reproducible. Draft a polite closing comment.
- "close-wontfix": outdated, superseded or no longer relevant. Draft a comment explaining why.
- "label-stale": might still be valid but needs author confirmation. Draft a comment asking, noting it will be closed in {self.close_days} days without activity.
- "keep-open": clearly still relevant. Use an empty draft_comment.

Rules:
- When in doubt, prefer "label-stale" over closing
- If recent comments show active discussion, prefer "keep-open"
- Reference related closed issues by number when relevant
{closed_section}
STALE ISSUES:
{issue_list}
"""

    def result_items(self, response: StaleResponse) -> list[StaleItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: StaleItem, now: datetime
    ) -> StaleIssue | None:
        store.set_analysis(
            issue.number,
            self.name,
            action=item.action,
            reason=item.reason,
            draft_comment=item.draft_comment or None,
            analyzed_at=now,
        )
        if item.action == "keep-open":
            return None
        return StaleIssue(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            days_inactive=days_inactive(issue, now),
            action=item.action,
            reason=item.reason,
            draft_comment=item.draft_comment,
        )

    def finalize(self, findings: list[StaleIssue]) -> list[StaleIssue]:
        return sorted(findings, key=lambda f: ACTION_ORDER.index(f.action))
