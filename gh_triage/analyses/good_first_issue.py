"""Spot open issues suited to newcomers."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from ..ai.prompt_formatting import labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Complexity, Issue

GOOD_FIRST_ISSUE_LABEL = "good first issue"


class GoodFirstIssueItem(BaseModel):
    number: int
    is_good_first_issue: bool
    reason: str = ""
    code_hint: str = ""
    estimated_complexity: Complexity = "small"


class GoodFirstIssueResponse(BaseModel):
    results: list[GoodFirstIssueItem]


@dataclass
class GoodFirstIssueSuggestion(Finding):
    reason: str = ""
    code_hint: str = ""
    complexity: Complexity = "small"

    def describe(self) -> str:
        return f"[{self.complexity}] {self.reason} Hint: {self.code_hint}"


def format_issue_for_newcomers(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    return f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Category: {d.category} | Area: {d.affected_area} | Keywords: {", ".join(d.keywords)}
Summary: {d.summary}
Body:
{truncate(issue.body)}"""


class GoodFirstIssueKind(AnalysisKind[GoodFirstIssueItem, GoodFirstIssueSuggestion]):
    name = "good_first_issue"
    command = "good-first-issue"
    title = "Good first issues"
    response_model = GoodFirstIssueResponse
    no_findings_message = "No good first issue candidates found."

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return [
            issue
            for issue in store.get_issues(state="open", has_digest=True)
            if GOOD_FIRST_ISSUE_LABEL not in issue.labels
        ]

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(format_issue_for_newcomers(i) for i in batch)
        return f"""You are deciding which GitHub issues suit new contributors ("good first issue").

A good first issue has:
- Self-contained scope that does not need the full architecture
- Clear acceptance criteria
- No architectural decisions to make
- Less than a day of work for a newcomer with basic experience
- An approachable, well-documented code area

Reject issues that:
- Span several interconnected systems
- Touch concurrency, performance tuning or security-sensitive code
- Are vague or under-specified
- Need significant refactoring or breaking changes

For suitable issues give a short reason, a code hint on where to start, and a complexity:
trivial (under an hour), small (a few hours) or medium (half a day).
For unsuitable issues set is_good_first_issue to false and leave reason and code_hint empty.

ISSUES:
{issue_list}
"""

    def result_items(self, response: GoodFirstIssueResponse) -> list[GoodFirstIssueItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: GoodFirstIssueItem, now: datetime
    ) -> GoodFirstIssueSuggestion | None:
        if not item.is_good_first_issue:
            store.set_analysis(
                issue.number,
                self.name,
                suitable=False,
                reason=None,
                code_hint=None,
                complexity=None,
                analyzed_at=now,
            )
            return None

        store.set_analysis(
            issue.number,
            self.name,
            suitable=True,
            reason=item.reason,
            code_hint=item.code_hint,
            complexity=item.estimated_complexity,
            analyzed_at=now,
        )
        return GoodFirstIssueSuggestion(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            reason=item.reason,
            code_hint=item.code_hint,
            complexity=item.estimated_complexity,
        )
