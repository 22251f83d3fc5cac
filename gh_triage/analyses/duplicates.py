"""Detect open issues that duplicate an existing one."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from ..ai.prompt_formatting import format_comments_for_prompt, format_digest_line
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue


class DuplicateItem(BaseModel):
    number: int
    duplicate_of: int
    confidence: float = Field(ge=0, le=1)
    reason: str


class DuplicateResponse(BaseModel):
    duplicates: list[DuplicateItem]


@dataclass
class DuplicatePair(Finding):
    original: int = 0
    original_title: str = ""
    confidence: float = 0.0
    reason: str = ""

    def describe(self) -> str:
        return (
            f"duplicate of #{self.original} ({round(self.confidence * 100)}%): "
            f"{self.reason}"
        )


def format_compact(issue: Issue) -> str:
    line = format_digest_line(issue)
    comments = format_comments_for_prompt(
        issue.comments, max_comments=3, max_chars_per_comment=200, max_total_chars=800
    )
    return f"{line}\n{comments}" if comments else line


class DuplicatesKind(AnalysisKind[DuplicateItem, DuplicatePair]):
    name = "duplicates"
    command = "duplicates"
    title = "Duplicate detection"
    response_model = DuplicateResponse
    no_findings_message = "No duplicates found."
    closes_issues = True

    def __init__(self, batch_size: int, min_confidence: float):
        super().__init__(batch_size)
        self.min_confidence = min_confidence
        self.knowledge_base: list[Issue] = []

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open", has_digest=True)

    async def prepare(self, store: IssueStore) -> str | None:
        self.knowledge_base = store.get_issues(has_digest=True)
        return None

    def build_prompt(self, batch: list[Issue]) -> str:
        knowledge_base = "\n".join(format_compact(i) for i in self.knowledge_base)
        candidates = "\n".join(format_compact(i) for i in batch)
        return f"""KNOWLEDGE BASE (all issues, compact digest format):
{knowledge_base}

CANDIDATES (check each against the knowledge base):
{candidates}

An issue is a duplicate if it describes the same underlying problem or feature request,
even if the wording is completely different.

Rules:
- A candidate can only duplicate a KNOWLEDGE BASE issue
- The original is always the lower-numbered issue
- Only include candidates that ARE duplicates; omit the rest
- Minimum confidence to include: {self.min_confidence:.2f}
- If comments say the issue is distinct, omit it
"""

    def result_items(self, response: DuplicateResponse) -> list[DuplicateItem]:
        return response.duplicates

    def apply(
        self, store: IssueStore, issue: Issue, item: DuplicateItem, now: datetime
    ) -> DuplicatePair | None:
        original = store.get_issue(item.duplicate_of)
        if (
            original is None
            or item.duplicate_of == issue.number
            or item.confidence < self.min_confidence
        ):
            store.set_analysis(
                issue.number,
                self.name,
                duplicate_of=None,
                confidence=None,
                reason=None,
                analyzed_at=now,
            )
            return None

        store.set_analysis(
            issue.number,
            self.name,
            duplicate_of=item.duplicate_of,
            confidence=item.confidence,
            reason=item.reason,
            analyzed_at=now,
        )
        return DuplicatePair(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            original=original.number,
            original_title=original.title,
            confidence=item.confidence,
            reason=item.reason,
        )
