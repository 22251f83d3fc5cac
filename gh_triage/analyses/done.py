"""Detect open issues that merged pull requests have already resolved."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from ..pipeline.base import AnalysisKind, Classifier, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, LinkedPullRequest

NO_LINKED_PRS = "No merged pull request references this issue"


class PullRequestSource(Protocol):
    def fetch_merged_prs(self, number: int) -> list[LinkedPullRequest]: ...


class DoneItem(BaseModel):
    number: int
    is_done: bool
    confidence: float = Field(ge=0, le=1)
    reason: str
    draft_comment: str = ""


class DoneResponse(BaseModel):
    results: list[DoneItem]


@dataclass
class ResolvedIssue(Finding):
    confidence: float = 0.0
    reason: str = ""
    draft_comment: str = ""
    merged_prs: list[LinkedPullRequest] = field(default_factory=list)

    def describe(self) -> str:
        prs = ", ".join(f"#{pr.number}" for pr in self.merged_prs)
        return f"resolved by {prs} ({round(self.confidence * 100)}%): {self.reason}"


class DoneKind(AnalysisKind[DoneItem, ResolvedIssue]):
    """Close detection from merged pull requests.

    Issues no merged PR points at are settled locally. Only the rest are
    sent to the classifier, together with the titles of their PRs.
    """

    name = "done"
    command = "done-detector"
    title = "Done detection"
    response_model = DoneResponse
    done_message = "All open issues already checked. Use --recheck to re-run."
    no_findings_message = "No issues look resolved."
    closes_issues = True

    def __init__(self, batch_size: int, min_confidence: float, tracker: PullRequestSource):
        super().__init__(batch_size)
        self.min_confidence = min_confidence
        self.tracker = tracker
        self.merged_prs: dict[int, list[LinkedPullRequest]] = {}

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open", has_digest=True)

    def _format_candidate(self, issue: Issue) -> str:
        d = issue.digest
        assert d is not None
        prs = "\n".join(
            f"  - PR #{pr.number}: {pr.title}" for pr in self.merged_prs[issue.number]
        )
        return f"""#{issue.number}: {issue.title}
Category: {d.category} | Area: {d.affected_area}
Summary: {d.summary}
Merged PRs referencing this issue:
{prs}"""

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(self._format_candidate(i) for i in batch)
        return f"""You are reviewing open GitHub issues that merged pull requests reference. Decide whether each issue has been resolved by its merged PR(s).

CONFIDENCE:
- 0.90-1.00: the PR explicitly fixes this issue (e.g. "Fix #123")
- 0.70-0.89: the PR is clearly related and likely resolves the issue
- below 0.70: the PR is tangential or only partly addresses the issue

Rules:
- Set is_done to true only if confidence >= {self.min_confidence:.2f}
- Consider all merged PRs together, several may resolve one issue
- When is_done is true, draft a polite closing comment naming the PR(s)
- When is_done is false, leave draft_comment empty

ISSUES WITH MERGED PR REFERENCES:
{issue_list}
"""

    async def classify(
        self, classifier: Classifier, batch: list[Issue]
    ) -> DoneResponse | None:
        for issue in batch:
            self.merged_prs[issue.number] = self.tracker.fetch_merged_prs(issue.number)

        settled = [
            DoneItem(number=i.number, is_done=False, confidence=0, reason=NO_LINKED_PRS)
            for i in batch
            if not self.merged_prs[i.number]
        ]
        linked = [i for i in batch if self.merged_prs[i.number]]
        if not linked:
            return DoneResponse(results=settled)

        response = await classifier.analyze(self.build_prompt(linked), DoneResponse)
        if response is None:
            return None
        return DoneResponse(results=settled + response.results)

    def result_items(self, response: DoneResponse) -> list[DoneItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: DoneItem, now: datetime
    ) -> ResolvedIssue | None:
        merged_prs = self.merged_prs.get(issue.number, [])
        done = item.is_done and item.confidence >= self.min_confidence
        store.set_analysis(
            issue.number,
            self.name,
            done_detected=done,
            confidence=item.confidence if merged_prs else None,
            reason=item.reason,
            draft_comment=(item.draft_comment or None) if done else None,
            merged_prs=merged_prs or None,
            analyzed_at=now,
        )
        if not done:
            return None
        return ResolvedIssue(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            confidence=item.confidence,
            reason=item.reason,
            draft_comment=item.draft_comment,
            merged_prs=merged_prs,
        )

    def finalize(self, findings: list[ResolvedIssue]) -> list[ResolvedIssue]:
        return sorted(findings, key=lambda f: f.confidence, reverse=True)
