"""Suggest repository labels that are missing from open issues."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from ..ai.prompt_formatting import truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue


class LabelSource(Protocol):
    def fetch_repo_labels(self) -> list[str]: ...


class LabelItem(BaseModel):
    number: int
    suggested: list[str] = Field(description="Labels to add, exact names only")
    reason: str


class LabelResponse(BaseModel):
    labels: list[LabelItem]


@dataclass
class LabelSuggestion(Finding):
    current_labels: list[str] = field(default_factory=list)
    suggested_labels: list[str] = field(default_factory=list)
    reason: str = ""

    def describe(self) -> str:
        current = ", ".join(self.current_labels) or "(none)"
        return f"{current} -> +{', +'.join(self.suggested_labels)}: {self.reason}"


def format_issue_for_labeling(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    current = ", ".join(issue.labels) or "(none)"
    return f"""#{issue.number}: {issue.title}
Current labels: {current}
Category: {d.category} | Area: {d.affected_area} | Keywords: {", ".join(d.keywords)}
Summary: {d.summary}
Body:
{truncate(issue.body)}"""


class LabelsKind(AnalysisKind[LabelItem, LabelSuggestion]):
    name = "labels"
    command = "labels"
    title = "Label suggestions"
    response_model = LabelResponse
    no_findings_message = "No label suggestions found."

    def __init__(self, batch_size: int, tracker: LabelSource):
        super().__init__(batch_size)
        self.tracker = tracker
        self.repo_labels: list[str] = []

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open", has_digest=True)

    async def prepare(self, store: IssueStore) -> str | None:
        self.repo_labels = self.tracker.fetch_repo_labels()
        if not self.repo_labels:
            return "No labels defined in the repository. Create labels on GitHub first."
        return None

    def build_prompt(self, batch: list[Issue]) -> str:
        label_list = "\n".join(f"  - {label}" for label in self.repo_labels)
        issue_list = "\n\n---\n\n".join(format_issue_for_labeling(i) for i in batch)
        return f"""You are labeling GitHub issues. Use ONLY labels from the repository's existing label set below; never invent new labels.

AVAILABLE LABELS:
{label_list}

For each issue, suggest which labels should be added based on its content:
- Type labels: bug, enhancement, documentation, question, etc.
- Area labels inferred from the affected area
- Assign critical/high priority labels only for data loss, security vulnerabilities, crashes or outages
- Only suggest labels that are NOT already on the issue; return an empty list when the labels are already right
- Each suggestion must be an exact label name from AVAILABLE LABELS

ISSUES:
{issue_list}
"""

    def result_items(self, response: LabelResponse) -> list[LabelItem]:
        return response.labels

    def apply(
        self, store: IssueStore, issue: Issue, item: LabelItem, now: datetime
    ) -> LabelSuggestion | None:
        new_labels = [
            label
            for label in item.suggested
            if label in self.repo_labels and label not in issue.labels
        ]
        store.set_analysis(
            issue.number,
            self.name,
            suggested_labels=new_labels or None,
            reason=item.reason if new_labels else None,
            analyzed_at=now,
        )
        if not new_labels:
            return None
        return LabelSuggestion(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            current_labels=list(issue.labels),
            suggested_labels=new_labels,
            reason=item.reason,
        )
