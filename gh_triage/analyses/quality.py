"""Flag low-quality submissions: spam, vague reports, test issues."""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from ..ai.prompt_formatting import labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, QualityFlag

QUALITY_BODY_CHARS = 3000

FLAG_LABELS: dict[str, str] = {
    "spam": "invalid",
    "vague": "needs-info",
    "test": "invalid",
    "wrong-language": "invalid",
}


class QualityItem(BaseModel):
    number: int
    quality: QualityFlag
    reason: str = ""
    suggested_label: str | None = None


class QualityResponse(BaseModel):
    results: list[QualityItem]


@dataclass
class QualityFlagged(Finding):
    flag: QualityFlag = "ok"
    reason: str = ""
    suggested_label: str = ""

    def describe(self) -> str:
        return f"[{self.flag}] {self.title}: {self.reason}"


def flag_counts(findings: list[QualityFlagged]) -> dict[str, int]:
    return dict(Counter(f.flag for f in findings))


class QualityKind(AnalysisKind[QualityItem, QualityFlagged]):
    name = "quality"
    command = "quality"
    title = "Quality check"
    response_model = QualityResponse
    done_message = "All open issues already checked. Use --recheck to re-run."
    no_findings_message = "No quality issues found; all issues look legitimate."

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        return store.get_issues(state="open")

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(
            f"#{i.number}{labels_suffix(i)}: {i.title}\n"
            f"Author: @{i.author}\n"
            f"Body:\n{truncate(i.body, QUALITY_BODY_CHARS)}"
            for i in batch
        )
        return f"""You are checking GitHub issues for submission quality.

QUALITY CATEGORIES:
- "spam": promotional content or completely unrelated to the project. suggested_label: "invalid"
- "vague": no actionable information ("it doesn't work", "help"). suggested_label: "needs-info"
- "test": accidental or test submissions ("asdf", empty body). suggested_label: "invalid"
- "wrong-language": not in the repository's primary language. suggested_label: "invalid"
- "ok": legitimate and actionable. suggested_label: null

Be conservative: when in doubt, mark as "ok". A short but clear issue is not vague.

ISSUES:
{issue_list}
"""

    def result_items(self, response: QualityResponse) -> list[QualityItem]:
        return response.results

    def apply(
        self, store: IssueStore, issue: Issue, item: QualityItem, now: datetime
    ) -> QualityFlagged | None:
        suggested = None
        if item.quality != "ok":
            suggested = item.suggested_label or FLAG_LABELS[item.quality]

        store.set_analysis(
            issue.number,
            self.name,
            flag=item.quality,
            reason=item.reason or None,
            suggested_label=suggested,
            analyzed_at=now,
        )
        if suggested is None:
            return None
        return QualityFlagged(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            flag=item.quality,
            reason=item.reason,
            suggested_label=suggested,
        )
