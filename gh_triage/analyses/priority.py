"""Score open issues by impact and urgency."""

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

from ..ai.prompt_formatting import format_comments_for_prompt, labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, PriorityLevel

PRIORITY_ORDER: tuple[PriorityLevel, ...] = ("critical", "high", "medium", "low")


class PriorityItem(BaseModel):
    number: int
    priority: PriorityLevel
    reason: str
    signals: list[str] = Field(description="Specific evidence quoted from the issue")


class PriorityResponse(BaseModel):
    priorities: list[PriorityItem]


@dataclass
class PrioritizedIssue(Finding):
    priority: PriorityLevel = "low"
    reason: str = ""
    signals: list[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"[{self.priority}] {self.reason}"


def format_issue_for_priority(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    text = f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Category: {d.category} | Area: {d.affected_area} | Keywords: {", ".join(d.keywords)}
Comments: {issue.comment_count} | Reactions: {issue.reactions}
Summary: {d.summary}
Body:
{truncate(issue.body)}"""
    comments = format_comments_for_prompt(issue.comments)
    return f"{text}\n{comments}" if comments else text


class PriorityKind(AnalysisKind[PriorityItem, PrioritizedIssue]):
    name = "priority"
    command = "priority"
    title = "Priority scoring"
    response_model = PriorityResponse
    done_message = "All issues already scored. Use --recheck to re-run."
    no_findings_message = "No issues to prioritize."

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open", has_digest=True)

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(format_issue_for_priority(i) for i in batch)
        return f"""You are assigning priority levels to GitHub issues based on impact and urgency.

PRIORITY RUBRIC:
- critical: data loss, security vulnerability, production down, affects most users
- high: regression, broken core functionality, affects a significant user segment
- medium: non-critical bug, UX issue, affects a subset of users
- low: enhancement, nice-to-have, cosmetic, edge case

Rules:
- Assign exactly one priority level per issue
- "signals" must cite specific evidence from the issue text
- Treat comment count and reactions as engagement signals
- Reserve "critical" for genuine emergencies

ISSUES:
{issue_list}
"""

    def result_items(self, response: PriorityResponse) -> list[PriorityItem]:
        return response.priorities

    def apply(
        self, store: IssueStore, issue: Issue, item: PriorityItem, now: datetime
    ) -> PrioritizedIssue:
        store.set_analysis(
            issue.number,
            self.name,
            priority=item.priority,
            reason=item.reason,
            signals=item.signals,
            analyzed_at=now,
        )
        return PrioritizedIssue(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            priority=item.priority,
            reason=item.reason,
            signals=item.signals,
        )

    def finalize(self, findings: list[PrioritizedIssue]) -> list[PrioritizedIssue]:
        return sorted(findings, key=lambda f: PRIORITY_ORDER.index(f.priority))
