"""Match open questions against previously answered closed issues."""

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, Field

from ..ai.prompt_formatting import truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue


class RecurringItem(BaseModel):
    number: int
    is_recurring: bool
    similar_closed_issues: list[int] = []
    suggested_response: str = ""
    confidence: float = Field(ge=0, le=1)


class RecurringResponse(BaseModel):
    questions: list[RecurringItem]


@dataclass
class RecurringQuestion(Finding):
    similar_closed_issues: list[tuple[int, str]] = field(default_factory=list)
    suggested_response: str = ""
    confidence: float = 0.0

    def describe(self) -> str:
        refs = ", ".join(f"#{number}" for number, _ in self.similar_closed_issues)
        first_line = self.suggested_response.split("\n")[0]
        return f"similar to {refs}: {first_line}"


def format_question(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    return f"""#{issue.number}: {issue.title}
Area: {d.affected_area} | Keywords: {", ".join(d.keywords)}
Summary: {d.summary}
Body:
{truncate(issue.body)}"""


class RecurringKind(AnalysisKind[RecurringItem, RecurringQuestion]):
    name = "recurring"
    command = "recurring"
    title = "Recurring questions"
    response_model = RecurringResponse
    done_message = "All questions already checked. Use --recheck to re-run."
    no_findings_message = "No recurring questions found."

    def __init__(self, batch_size: int):
        super().__init__(batch_size)
        self.closed: list[Issue] = []

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return [
            issue
            for issue in store.get_issues(state="open", has_digest=True)
            if issue.digest is not None and issue.digest.category == "question"
        ]

    async def prepare(self, store: IssueStore) -> str | None:
        self.closed = store.get_issues(state="closed", has_digest=True)
        if not self.closed:
            return "No closed issues to compare against."
        return None

    def build_prompt(self, batch: list[Issue]) -> str:
        knowledge_base = "\n".join(
            f"  #{i.number}: {i.title} | Area: {i.digest.affected_area} "
            f"| Summary: {i.digest.summary}"
            for i in self.closed
            if i.digest is not None
        )
        questions = "\n\n---\n\n".join(format_question(i) for i in batch)
        return f"""You are checking open GitHub questions against previously answered closed issues.

KNOWLEDGE BASE (closed issues):
{knowledge_base}

Rules:
- Mark as recurring only if a closed issue genuinely answers the open question
- The suggested response MUST reference the closed issue number(s); do not invent answers
- If there is no match, set is_recurring to false with an empty similar_closed_issues list
- Confidence reflects how well the closed issue(s) answer the question

OPEN QUESTIONS:
{questions}
"""

    def result_items(self, response: RecurringResponse) -> list[RecurringItem]:
        return response.questions

    def apply(
        self, store: IssueStore, issue: Issue, item: RecurringItem, now: datetime
    ) -> RecurringQuestion | None:
        if not (item.is_recurring and item.similar_closed_issues):
            store.set_analysis(
                issue.number,
                self.name,
                is_recurring=False,
                similar_closed_issues=None,
                suggested_response=None,
                confidence=None,
                analyzed_at=now,
            )
            return None

        store.set_analysis(
            issue.number,
            self.name,
            is_recurring=True,
            similar_closed_issues=item.similar_closed_issues,
            suggested_response=item.suggested_response,
            confidence=item.confidence,
            analyzed_at=now,
        )
        similar = []
        for number in item.similar_closed_issues:
            closed = store.get_issue(number)
            similar.append((number, closed.title if closed else f"Issue #{number}"))
        return RecurringQuestion(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            similar_closed_issues=similar,
            suggested_response=item.suggested_response,
            confidence=item.confidence,
        )
