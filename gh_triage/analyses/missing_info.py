"""Detect bug reports that lack the details needed to reproduce them."""

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel

from ..ai.prompt_formatting import format_comments_for_prompt, labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue

BUG_BODY_CHARS = 3000


class MissingInfoItem(BaseModel):
    number: int
    has_missing_info: bool
    missing_fields: list[str] = []
    suggested_comment: str = ""


class MissingInfoResponse(BaseModel):
    results: list[MissingInfoItem]


@dataclass
class MissingInfoFinding(Finding):
    missing_fields: list[str] = field(default_factory=list)
    suggested_comment: str = ""

    def describe(self) -> str:
        return f"missing {', '.join(self.missing_fields)}"


def format_bug_report(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    text = f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Category: {d.category} | Area: {d.affected_area}
Body:
{truncate(issue.body, BUG_BODY_CHARS)}"""
    comments = format_comments_for_prompt(issue.comments)
    return f"{text}\n{comments}" if comments else text


class MissingInfoKind(AnalysisKind[MissingInfoItem, MissingInfoFinding]):
    name = "missing_info"
    command = "missing-info"
    title = "Missing information"
    response_model = MissingInfoResponse
    done_message = "All bug reports already checked. Use --recheck to re-run."
    no_findings_message = "No issues with missing information found."

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return [
            issue
            for issue in store.get_issues(state="open", has_digest=True)
            if issue.digest is not None and issue.digest.category == "bug"
        ]

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(format_bug_report(i) for i in batch)
        return f"""You are checking GitHub bug reports for missing information needed to reproduce and fix them.

Be context-aware:
- Database issues need schema, query, database version, error message
- UI issues need browser, OS, steps to reproduce
- API issues need endpoint, request, response, status code
- CLI issues need command, OS, version, output
- Crashes need the full error message and stack trace
- All bugs need steps to reproduce and expected vs actual behavior

If the issue or its comments already contain enough to investigate, set has_missing_info to false.
Otherwise write a short, polite GitHub comment (3-5 bullet points) asking for exactly what is missing.

ISSUES:
{issue_list}
"""

    def result_items(self, response: MissingInfoResponse) -> list[MissingInfoItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: MissingInfoItem, now: datetime
    ) -> MissingInfoFinding | None:
        if not item.has_missing_info:
            store.set_analysis(
                issue.number,
                self.name,
                missing_fields=None,
                suggested_comment=None,
                analyzed_at=now,
            )
            return None

        store.set_analysis(
            issue.number,
            self.name,
            missing_fields=item.missing_fields,
            suggested_comment=item.suggested_comment,
            analyzed_at=now,
        )
        return MissingInfoFinding(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            missing_fields=item.missing_fields,
            suggested_comment=item.suggested_comment,
        )
