"""Find open issues still waiting on a maintainer reply."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from ..ai.prompt_formatting import format_comments_for_prompt, labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, ResponseStatus

AWAITING_STATUSES = ("needs-response", "new-issue")


class NeedsResponseItem(BaseModel):
    number: int
    status: ResponseStatus
    reason: str


class NeedsResponseResponse(BaseModel):
    results: list[NeedsResponseItem]


@dataclass
class AwaitingResponse(Finding):
    status: ResponseStatus = "needs-response"
    reason: str = ""

    def describe(self) -> str:
        tag = "[NEW]" if self.status == "new-issue" else "[AWAITING]"
        return f"{tag} {self.reason}"


def format_issue_for_response(issue: Issue, org_members: set[str]) -> str:
    d = issue.digest
    assert d is not None
    tagged = [
        c.model_copy(update={"author": f"{c.author} [ORG]"})
        if c.author.lower() in org_members
        else c
        for c in issue.comments
    ]
    comments = format_comments_for_prompt(tagged) if tagged else "(no comments)"
    author_tag = " [ORG]" if issue.author.lower() in org_members else ""
    return f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Author: {issue.author}{author_tag} | Category: {d.category} | Area: {d.affected_area}
Comment count: {issue.comment_count}
Body:
{truncate(issue.body)}
{comments}"""


class NeedsResponseKind(AnalysisKind[NeedsResponseItem, AwaitingResponse]):
    name = "needs_response"
    command = "needs-response"
    title = "Needs response"
    response_model = NeedsResponseResponse
    done_message = "All open issues already checked. Use --recheck to re-run."
    no_findings_message = "No issues needing response found."
    rechecks_on_new_comments = True

    def __init__(self, batch_size: int):
        super().__init__(batch_size)
        self.org_members: list[str] = []

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open", has_digest=True)

    async def prepare(self, store: IssueStore) -> str | None:
        self.org_members = store.get_meta().org_members
        return None

    def build_prompt(self, batch: list[Issue]) -> str:
        members = {m.lower() for m in self.org_members}
        if self.org_members:
            member_line = f"Org members / maintainers: {', '.join(self.org_members)}"
        else:
            member_line = (
                "No org member list available; use collaborator and author context clues."
            )
        issue_list = "\n\n---\n\n".join(
            format_issue_for_response(i, members) for i in batch
        )
        return f"""You are deciding whether GitHub issues need a response from a maintainer.

{member_line}

Classify each issue as:
- "new-issue": no comments at all, needs initial triage
- "needs-response": the latest meaningful activity is from a community user and no org member has addressed it
- "responded": an org member has meaningfully addressed the issue or the user's latest concern

Rules:
- Bot comments do not count as a maintainer response
- Comments tagged [ORG] are from org members
- If an org member asked for more info and the user provided it, it needs a new response
- If the author is an org member, classify as "responded"

ISSUES:
{issue_list}
"""

    def result_items(self, response: NeedsResponseResponse) -> list[NeedsResponseItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: NeedsResponseItem, now: datetime
    ) -> AwaitingResponse | None:
        store.set_analysis(
            issue.number,
            self.name,
            status=item.status,
            reason=item.reason,
            analyzed_at=now,
        )
        if item.status not in AWAITING_STATUSES:
            return None
        return AwaitingResponse(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            status=item.status,
            reason=item.reason,
        )
