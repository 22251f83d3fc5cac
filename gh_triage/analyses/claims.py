"""Detect contributors claiming an issue in its comments.

Claims are found with regular expressions over the stored comments, so
this kind never calls the LLM.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from ..pipeline.base import AnalysisKind, Classifier, Finding
from ..store.manager import IssueStore
from ..store.models import Comment, Issue

CLAIMS_BATCH_SIZE = 50

# Straight apostrophe plus left/right smart quotes
_APOS = "['‘’]"

CLAIM_PATTERNS: list[re.Pattern[str]] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        rf"\bi{_APOS}ll take (?:it|this)\b",
        rf"\bi{_APOS}ll work on (?:this|it)\b",
        rf"\bi{_APOS}d like to (?:work on|take|fix|tackle|handle) (?:this|it)\b",
        r"\bi want to work on (?:this|it)\b",
        r"\bi can take (?:this|it)\b",
        rf"\bi{_APOS}ll fix (?:this|it)\b",
        rf"\bi{_APOS}ll handle (?:this|it)\b",
        rf"\bi{_APOS}ll tackle (?:this|it)\b",
        rf"\bi{_APOS}ll submit (?:a )?(?:pr|pull request|fix|patch)(?: for this)?\b",
        rf"\bi{_APOS}ll implement (?:this|it)\b",
        r"\bworking on (?:it|this)\b",
        r"\bcan i work on (?:this|it)\b",
        r"\blet me take (?:this|it)\b",
        rf"\bi{_APOS}m on (?:it|this)\b",
        rf"\bi{_APOS}ll pick this up\b",
    )
]

NEGATIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\btake a look\b",
        r"\btook a look\b",
        r"\btake a peek\b",
        r"\blooking into (?:it|this)\b",
    )
]


class ClaimItem(BaseModel):
    number: int
    claimed_by: str | None = None
    snippet: str | None = None
    claimed_at: datetime | None = None


class ClaimResponse(BaseModel):
    claims: list[ClaimItem]


@dataclass
class ClaimedIssue(Finding):
    claimant: str = ""
    snippet: str = ""
    claimed_at: datetime | None = None

    def describe(self) -> str:
        return f'@{self.claimant}: "{self.snippet}"'


def detect_claim(comment: Comment) -> ClaimItem | None:
    """Return the claim made by ``comment``, if any.

    Comments matching a negative pattern ("take a look", ...) never count
    as claims. The snippet spans 20 characters before and 60 after the
    matched phrase.
    """
    body = comment.body
    if any(neg.search(body) for neg in NEGATIVE_PATTERNS):
        return None

    for pattern in CLAIM_PATTERNS:
        match = pattern.search(body)
        if match is None:
            continue
        start = max(0, match.start() - 20)
        end = min(len(body), match.end() + 60)
        snippet = body[start:end].strip()
        if start > 0:
            snippet = "..." + snippet
        if end < len(body):
            snippet += "..."
        # number is filled in by the caller
        return ClaimItem(
            number=0,
            claimed_by=comment.author,
            snippet=snippet,
            claimed_at=comment.created_at,
        )
    return None


def latest_claim(issue: Issue) -> ClaimItem:
    """Scan comments in order; the last claim wins."""
    found = None
    for comment in issue.comments:
        claim = detect_claim(comment)
        if claim is not None:
            found = claim
    if found is None:
        return ClaimItem(number=issue.number)
    return found.model_copy(update={"number": issue.number})


class ClaimsKind(AnalysisKind[ClaimItem, ClaimedIssue]):
    name = "claims"
    command = "claims"
    title = "Claim detection"
    response_model = ClaimResponse
    done_message = "All open issues already checked. Use --recheck to re-run."
    no_findings_message = "No claim comments detected."
    rechecks_on_new_comments = True

    def __init__(self, batch_size: int = CLAIMS_BATCH_SIZE):
        super().__init__(batch_size)

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open")

    def build_prompt(self, batch: list[Issue]) -> str:
        return "\n".join(f"#{issue.number}: {issue.title}" for issue in batch)

    async def classify(
        self, classifier: Classifier, batch: list[Issue]
    ) -> ClaimResponse:
        return ClaimResponse(claims=[latest_claim(issue) for issue in batch])

    def result_items(self, response: ClaimResponse) -> list[ClaimItem]:
        return response.claims

    def apply(
        self, store: IssueStore, issue: Issue, item: ClaimItem, now: datetime
    ) -> ClaimedIssue | None:
        store.set_analysis(
            issue.number,
            self.name,
            claimed_by=item.claimed_by,
            snippet=item.snippet,
            claimed_at=item.claimed_at,
            analyzed_at=now,
        )
        if item.claimed_by is None or item.claimed_by in issue.assignees:
            return None
        return ClaimedIssue(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            claimant=item.claimed_by,
            snippet=item.snippet or "",
            claimed_at=item.claimed_at,
        )
