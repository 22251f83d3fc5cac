"""Find issues with security implications, labeled or not."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from ..ai.prompt_formatting import format_comments_for_prompt, labels_suffix, truncate
from ..pipeline.base import AnalysisKind, Finding
from ..store.manager import IssueStore
from ..store.models import Issue, SecuritySeverity

SEVERITY_ORDER: tuple[SecuritySeverity, ...] = ("critical", "high", "medium", "low")
SECURITY_BODY_CHARS = 4000
SECURITY_LABEL = "security"


class SecurityItem(BaseModel):
    number: int
    is_security_related: bool
    confidence: float = Field(ge=0, le=1)
    category: str = ""
    severity: SecuritySeverity = "low"
    explanation: str = ""


class SecurityResponse(BaseModel):
    findings: list[SecurityItem]


@dataclass
class SecurityFinding(Finding):
    confidence: float = 0.0
    category: str = ""
    severity: SecuritySeverity = "low"
    explanation: str = ""

    def describe(self) -> str:
        return (
            f"[{self.severity}] {self.category} ({round(self.confidence * 100)}%): "
            f"{self.explanation}"
        )


def format_issue_for_scan(issue: Issue) -> str:
    d = issue.digest
    assert d is not None
    text = f"""#{issue.number}{labels_suffix(issue)}: {issue.title}
Category: {d.category} | Area: {d.affected_area} | Keywords: {", ".join(d.keywords)}
Summary: {d.summary}
Full body:
{truncate(issue.body, SECURITY_BODY_CHARS)}"""
    comments = format_comments_for_prompt(issue.comments, max_comments=5)
    return f"{text}\n{comments}" if comments else text


class SecurityKind(AnalysisKind[SecurityItem, SecurityFinding]):
    name = "security"
    command = "security"
    title = "Security scan"
    response_model = SecurityResponse
    done_message = "All issues already scanned. Use --recheck to re-run."
    no_findings_message = "No security findings."
    rechecks_on_new_comments = True

    def __init__(self, batch_size: int, min_confidence: float):
        super().__init__(batch_size)
        self.min_confidence = min_confidence

    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        # every category, not just bugs
        return store.get_issues(state="open", has_digest=True)

    def build_prompt(self, batch: list[Issue]) -> str:
        issue_list = "\n\n---\n\n".join(format_issue_for_scan(i) for i in batch)
        return f"""You are performing a security triage of GitHub issues. Identify issues with security implications, even if they are not labeled as security issues.

DETECTION CATEGORIES:
- Authentication bypass: login or session problems that could allow unauthorized access
- Session hijacking: session fixation, cookie theft, token leakage
- Privilege escalation: users gaining access beyond their role
- Injection: SQL, command, path traversal, XSS, template injection
- Data exposure: API keys in logs, PII leakage, sensitive data in error responses
- Credential logging: passwords or tokens written to logs or console
- Dependency vulnerabilities: known CVEs, outdated packages with security fixes

Rules:
- Read the full body carefully, security details are often subtle
- Set confidence by how clearly the issue describes a security problem (0.0-1.0)
- Only set is_security_related to true when confidence >= {self.min_confidence:.2f}
- Prefer flagging for review over missing a vulnerability
- For unrelated issues set is_security_related to false and leave the other fields empty
- Severity reflects the impact if the problem were exploited

ISSUES:
{issue_list}
"""

    def result_items(self, response: SecurityResponse) -> list[SecurityItem]:
        return response.findings

    def apply(
        self, store: IssueStore, issue: Issue, item: SecurityItem, now: datetime
    ) -> SecurityFinding | None:
        if not item.is_security_related or item.confidence < self.min_confidence:
            store.set_analysis(
                issue.number,
                self.name,
                flagged=False,
                confidence=None,
                category=None,
                severity=None,
                explanation=None,
                analyzed_at=now,
            )
            return None

        store.set_analysis(
            issue.number,
            self.name,
            flagged=True,
            confidence=item.confidence,
            category=item.category,
            severity=item.severity,
            explanation=item.explanation,
            analyzed_at=now,
        )
        return SecurityFinding(
            number=issue.number,
            title=issue.title,
            html_url=issue.html_url,
            confidence=item.confidence,
            category=item.category,
            severity=item.severity,
            explanation=item.explanation,
        )

    def finalize(self, findings: list[SecurityFinding]) -> list[SecurityFinding]:
        return sorted(findings, key=lambda f: SEVERITY_ORDER.index(f.severity))
