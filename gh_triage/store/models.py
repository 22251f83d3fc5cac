"""Pydantic models for the persisted issue store.

The store keeps one ``Issue`` per tracker issue number. Tracker-sourced
fields are overwritten on sync; ``digest`` and ``analysis`` are derived
locally and survive syncs.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

IssueState = Literal["open", "closed"]
StateFilter = Literal["open", "closed", "all"]
DigestCategory = Literal["bug", "feature", "docs", "chore", "question", "other"]
PriorityLevel = Literal["critical", "high", "medium", "low"]
QualityFlag = Literal["spam", "vague", "test", "wrong-language", "ok"]
StaleAction = Literal["close-resolved", "close-wontfix", "label-stale", "keep-open"]
ResponseStatus = Literal["needs-response", "responded", "new-issue"]
SecuritySeverity = Literal["critical", "high", "medium", "low"]
Complexity = Literal["trivial", "small", "medium"]


class Comment(BaseModel):
    """A single issue comment as mirrored from the tracker."""

    author: str = Field(..., description="Login of the comment author")
    body: str = Field(..., description="Comment text")
    created_at: datetime = Field(..., description="When the comment was posted")


class TrackerIssue(BaseModel):
    """Raw issue record as returned by the tracker client.

    Carries only tracker-sourced fields; the store derives everything else.
    """

    number: int = Field(..., description="Tracker-assigned issue number")
    title: str
    body: str = ""
    state: IssueState
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    author: str
    created_at: datetime
    updated_at: datetime
    html_url: str
    comment_count: int = 0
    reactions: int = 0


class IssueDigest(BaseModel):
    """Compact summary produced once per content version of an issue."""

    summary: str
    category: DigestCategory
    affected_area: str
    keywords: list[str] = Field(default_factory=list)
    digested_at: datetime


class DimensionResult(BaseModel):
    """Common shape of every analysis dimension.

    ``analyzed_at`` is the only signal that the dimension has run. Result
    fields may legitimately stay empty after a run.
    """

    model_config = ConfigDict(extra="forbid")

    analyzed_at: datetime | None = None


class LabelsResult(DimensionResult):
    suggested_labels: list[str] | None = None
    reason: str | None = None
    applied_at: datetime | None = None


class PriorityResult(DimensionResult):
    priority: PriorityLevel | None = None
    reason: str | None = None
    signals: list[str] | None = None


class QualityResult(DimensionResult):
    flag: QualityFlag | None = None
    reason: str | None = None
    suggested_label: str | None = None
    applied_at: datetime | None = None


class MissingInfoResult(DimensionResult):
    missing_fields: list[str] | None = None
    suggested_comment: str | None = None
    posted_at: datetime | None = None


class RecurringResult(DimensionResult):
    is_recurring: bool | None = None
    similar_closed_issues: list[int] | None = None
    suggested_response: str | None = None
    confidence: float | None = None


class StaleResult(DimensionResult):
    action: StaleAction | None = None
    reason: str | None = None
    draft_comment: str | None = None


class ClaimsResult(DimensionResult):
    claimed_by: str | None = None
    snippet: str | None = None
    claimed_at: datetime | None = None


class NeedsResponseResult(DimensionResult):
    status: ResponseStatus | None = None
    reason: str | None = None


class DuplicatesResult(DimensionResult):
    duplicate_of: int | None = None
    confidence: float | None = None
    reason: str | None = None


class LinkedPullRequest(BaseModel):
    """A merged pull request that cross-references an issue."""

    number: int
    title: str


class DoneResult(DimensionResult):
    done_detected: bool | None = None
    confidence: float | None = None
    reason: str | None = None
    draft_comment: str | None = None
    merged_prs: list[LinkedPullRequest] | None = None
    closed_at: datetime | None = None


class SecurityResult(DimensionResult):
    flagged: bool | None = None
    confidence: float | None = None
    category: str | None = None
    severity: SecuritySeverity | None = None
    explanation: str | None = None
    applied_at: datetime | None = None


class GoodFirstIssueResult(DimensionResult):
    suitable: bool | None = None
    reason: str | None = None
    code_hint: str | None = None
    complexity: Complexity | None = None
    applied_at: datetime | None = None


class IssueAnalysis(BaseModel):
    """Per-dimension analysis state.

    Each dimension is independent and stays ``None`` until it first runs.
    """

    labels: LabelsResult | None = None
    priority: PriorityResult | None = None
    quality: QualityResult | None = None
    missing_info: MissingInfoResult | None = None
    recurring: RecurringResult | None = None
    stale: StaleResult | None = None
    claims: ClaimsResult | None = None
    needs_response: NeedsResponseResult | None = None
    duplicates: DuplicatesResult | None = None
    done: DoneResult | None = None
    security: SecurityResult | None = None
    good_first_issue: GoodFirstIssueResult | None = None


DIMENSIONS: dict[str, type[DimensionResult]] = {
    "labels": LabelsResult,
    "priority": PriorityResult,
    "quality": QualityResult,
    "missing_info": MissingInfoResult,
    "recurring": RecurringResult,
    "stale": StaleResult,
    "claims": ClaimsResult,
    "needs_response": NeedsResponseResult,
    "duplicates": DuplicatesResult,
    "done": DoneResult,
    "security": SecurityResult,
    "good_first_issue": GoodFirstIssueResult,
}


class Issue(BaseModel):
    """An issue as held in the store."""

    number: int = Field(..., description="Tracker-assigned issue number")
    title: str
    body: str = ""
    state: IssueState
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    author: str
    created_at: datetime
    updated_at: datetime
    html_url: str
    comment_count: int = 0
    reactions: int = 0
    content_fingerprint: str = Field(
        ..., description="SHA-256 of title and body, used to detect content edits"
    )
    comments: list[Comment] = Field(default_factory=list)
    comments_fetched_at: datetime | None = None
    digest: IssueDigest | None = None
    analysis: IssueAnalysis = Field(default_factory=IssueAnalysis)

    def result(self, dimension: str) -> DimensionResult | None:
        """Return the stored result record for a dimension, if any."""
        if dimension not in DIMENSIONS:
            raise KeyError(f"Unknown analysis dimension: {dimension}")
        result: DimensionResult | None = getattr(self.analysis, dimension)
        return result

    def analyzed_at(self, dimension: str) -> datetime | None:
        """When the dimension last ran for this issue, or None if never."""
        result = self.result(dimension)
        return result.analyzed_at if result is not None else None

    def has_new_comments_since(self, dimension: str) -> bool:
        """True when comments were refreshed after the dimension last ran."""
        analyzed = self.analyzed_at(dimension)
        return (
            analyzed is not None
            and self.comments_fetched_at is not None
            and self.comments_fetched_at > analyzed
        )


class StoreMeta(BaseModel):
    """Store-wide metadata."""

    owner: str
    repo: str
    last_synced_at: datetime | None = None
    total_fetched: int = 0
    org_members: list[str] = Field(default_factory=list)
    version: Literal[1] = 1


class StoreDocument(BaseModel):
    """The complete persisted unit: metadata plus every issue."""

    meta: StoreMeta
    issues: list[Issue] = Field(default_factory=list)
