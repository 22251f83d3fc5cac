"""Tests for the LLM-backed analysis kinds."""

from datetime import timedelta

import pytest
from conftest import FakeTracker, ScriptedClassifier, make_comment, make_digest, make_record

from gh_triage.analyses.duplicates import DuplicateItem, DuplicatesKind
from gh_triage.analyses.good_first_issue import GoodFirstIssueItem, GoodFirstIssueKind
from gh_triage.analyses.labels import LabelItem, LabelsKind
from gh_triage.analyses.missing_info import MissingInfoItem, MissingInfoKind
from gh_triage.analyses.needs_response import NeedsResponseItem, NeedsResponseKind
from gh_triage.analyses.quality import QualityItem, QualityKind, flag_counts
from gh_triage.analyses.recurring import RecurringItem, RecurringKind, RecurringResponse
from gh_triage.analyses.security import SecurityItem, SecurityKind, SecurityResponse
from gh_triage.analyses.stale import StaleItem, StaleKind, StaleResponse
from gh_triage.pipeline.runner import AnalysisPipeline, RunOutcome


class TestLabels:
    """Test label suggestions."""

    @pytest.mark.asyncio
    async def test_only_valid_new_labels_are_kept(self, populated_store, now) -> None:
        store = populated_store(1)
        store.upsert_issue(make_record(1, labels=["ui"]))
        kind = LabelsKind(10, FakeTracker(labels=["bug", "ui"]))
        await kind.prepare(store)

        finding = kind.apply(
            store,
            store.get_issue(1),
            LabelItem(number=1, suggested=["bug", "ui", "invented"], reason="crash"),
            now,
        )

        assert finding.suggested_labels == ["bug"]
        assert finding.current_labels == ["ui"]
        assert store.get_issue(1).analysis.labels.suggested_labels == ["bug"]

    @pytest.mark.asyncio
    async def test_nothing_valid_records_no_suggestion(self, populated_store, now) -> None:
        store = populated_store(1)
        kind = LabelsKind(10, FakeTracker(labels=["bug"]))
        await kind.prepare(store)

        finding = kind.apply(
            store,
            store.get_issue(1),
            LabelItem(number=1, suggested=["invented"], reason="?"),
            now,
        )

        assert finding is None
        result = store.get_issue(1).analysis.labels
        assert result.suggested_labels is None
        assert result.analyzed_at == now

    @pytest.mark.asyncio
    async def test_prompt_lists_repository_labels(self, populated_store) -> None:
        store = populated_store(1)
        kind = LabelsKind(10, FakeTracker(labels=["bug", "good first issue"]))
        await kind.prepare(store)

        prompt = kind.build_prompt(store.get_issues())

        assert "  - good first issue" in prompt
        assert "#1: Issue 1" in prompt

    def test_undigested_issues_are_not_candidates(self, store, now) -> None:
        store.upsert_issue(make_record(1))

        assert LabelsKind(10, FakeTracker()).candidates(store, False, now) == []


class TestQuality:
    """Test quality flags."""

    def test_default_label_per_flag(self, store, now) -> None:
        store.upsert_issue(make_record(1))

        finding = QualityKind(10).apply(
            store, store.get_issue(1), QualityItem(number=1, quality="vague"), now
        )

        assert finding.suggested_label == "needs-info"
        assert store.get_issue(1).analysis.quality.suggested_label == "needs-info"

    def test_model_label_overrides_default(self, store, now) -> None:
        store.upsert_issue(make_record(1))

        finding = QualityKind(10).apply(
            store,
            store.get_issue(1),
            QualityItem(number=1, quality="spam", suggested_label="spam"),
            now,
        )

        assert finding.suggested_label == "spam"

    def test_ok_is_recorded_without_finding(self, store, now) -> None:
        store.upsert_issue(make_record(1))

        finding = QualityKind(10).apply(
            store, store.get_issue(1), QualityItem(number=1, quality="ok"), now
        )

        assert finding is None
        result = store.get_issue(1).analysis.quality
        assert result.flag == "ok"
        assert result.suggested_label is None

    def test_runs_on_undigested_open_issues(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2, state="closed"))

        candidates = QualityKind(10).candidates(store, False, now)

        assert [i.number for i in candidates] == [1]

    def test_flag_counts(self, store, now) -> None:
        kind = QualityKind(10)
        findings = []
        for number, flag in [(1, "spam"), (2, "vague"), (3, "spam")]:
            store.upsert_issue(make_record(number))
            findings.append(
                kind.apply(
                    store,
                    store.get_issue(number),
                    QualityItem(number=number, quality=flag),
                    now,
                )
            )

        assert flag_counts(findings) == {"spam": 2, "vague": 1}


class TestMissingInfo:
    """Test missing-info detection."""

    def test_only_bug_reports_are_candidates(self, populated_store, now) -> None:
        store = populated_store(1)
        store.upsert_issue(make_record(2))
        store.set_digest(2, make_digest("feature"))

        candidates = MissingInfoKind(10).candidates(store, False, now)

        assert [i.number for i in candidates] == [1]

    def test_negative_result_clears_previous_request(self, populated_store, now) -> None:
        store = populated_store(1)
        kind = MissingInfoKind(10)
        kind.apply(
            store,
            store.get_issue(1),
            MissingInfoItem(
                number=1,
                has_missing_info=True,
                missing_fields=["version"],
                suggested_comment="Which version?",
            ),
            now,
        )

        later = now + timedelta(days=1)
        finding = kind.apply(
            store,
            store.get_issue(1),
            MissingInfoItem(number=1, has_missing_info=False),
            later,
        )

        assert finding is None
        result = store.get_issue(1).analysis.missing_info
        assert result.missing_fields is None
        assert result.suggested_comment is None
        assert result.analyzed_at == later


class TestRecurring:
    """Test recurring question matching."""

    @pytest.mark.asyncio
    async def test_needs_closed_issues(self, populated_store, now) -> None:
        store = populated_store(1, category="question")
        classifier = ScriptedClassifier()

        result = await AnalysisPipeline(store, classifier).run(RecurringKind(10), now=now)

        assert result.outcome is RunOutcome.PRECONDITION_FAILED
        assert result.summary() == "No closed issues to compare against."
        assert classifier.prompts == []

    @pytest.mark.asyncio
    async def test_finding_carries_closed_titles(self, populated_store, now) -> None:
        store = populated_store(1, category="question")
        store.upsert_issue(make_record(7, state="closed", title="How to configure proxy"))
        store.set_digest(7, make_digest("question"))
        classifier = ScriptedClassifier(
            RecurringResponse(
                questions=[
                    RecurringItem(
                        number=1,
                        is_recurring=True,
                        similar_closed_issues=[7, 99],
                        suggested_response="See #7",
                        confidence=0.9,
                    )
                ]
            )
        )

        result = await AnalysisPipeline(store, classifier).run(RecurringKind(10), now=now)

        assert "#7: How to configure proxy" in classifier.prompts[0]
        assert result.items[0].similar_closed_issues == [
            (7, "How to configure proxy"),
            (99, "Issue #99"),
        ]
        assert store.get_issue(1).analysis.recurring.similar_closed_issues == [7, 99]

    def test_not_recurring_clears_fields(self, populated_store, now) -> None:
        store = populated_store(1, category="question")
        store.set_analysis(
            1, "recurring", is_recurring=True, similar_closed_issues=[7], confidence=0.9
        )

        finding = RecurringKind(10).apply(
            store,
            store.get_issue(1),
            RecurringItem(number=1, is_recurring=False, confidence=0.1),
            now,
        )

        assert finding is None
        result = store.get_issue(1).analysis.recurring
        assert result.is_recurring is False
        assert result.similar_closed_issues is None
        assert result.confidence is None


class TestStale:
    """Test stale issue triage."""

    def _store(self, store, now):
        store.upsert_issue(make_record(1, updated_at=now - timedelta(days=120)))
        store.upsert_issue(make_record(2, updated_at=now - timedelta(days=80)))
        store.upsert_issue(make_record(3, updated_at=now - timedelta(days=5)))
        for number in (1, 2, 3):
            store.set_digest(number, make_digest())
        return store

    def test_threshold_uses_injected_now(self, store, now) -> None:
        kind = StaleKind(10, days_threshold=90, close_days=14)
        self._store(store, now)

        assert [i.number for i in kind.candidates(store, False, now)] == [1]
        later = now + timedelta(days=15)
        assert [i.number for i in kind.candidates(store, False, later)] == [1, 2]

    @pytest.mark.asyncio
    async def test_keep_open_is_not_reported(self, store, now) -> None:
        self._store(store, now)
        store.upsert_issue(make_record(4, updated_at=now - timedelta(days=200)))
        store.set_digest(4, make_digest())
        classifier = ScriptedClassifier(
            StaleResponse(
                results=[
                    StaleItem(number=1, action="keep-open", reason="active"),
                    StaleItem(
                        number=4,
                        action="label-stale",
                        reason="no reply",
                        draft_comment="Still an issue?",
                    ),
                ]
            )
        )

        result = await AnalysisPipeline(store, classifier).run(
            StaleKind(10, days_threshold=90, close_days=14), now=now
        )

        assert [f.number for f in result.items] == [4]
        assert result.items[0].days_inactive == 200
        assert "closed in 14 days" in classifier.prompts[0]
        assert "Days inactive: 120" in classifier.prompts[0]
        assert store.get_issue(1).analysis.stale.action == "keep-open"

    def test_new_comments_recheck(self, store, now) -> None:
        self._store(store, now)
        kind = StaleKind(10, days_threshold=90, close_days=14)
        store.set_analysis(1, "stale", action="keep-open", analyzed_at=now)

        assert kind.candidates(store, False, now) == []

        later = now + timedelta(hours=2)
        store.set_comments(1, [make_comment("bob", "still happening")], later)
        assert [i.number for i in kind.candidates(store, False, later)] == [1]

    def test_findings_sorted_by_action(self, store, now) -> None:
        self._store(store, now)
        kind = StaleKind(10, days_threshold=90, close_days=14)
        findings = [
            kind.apply(store, store.get_issue(n), StaleItem(number=n, action=a, reason="r"), now)
            for n, a in [(1, "label-stale"), (2, "close-resolved"), (3, "close-wontfix")]
        ]

        ordered = kind.finalize(findings)

        assert [f.action for f in ordered] == ["close-resolved", "close-wontfix", "label-stale"]


class TestNeedsResponse:
    """Test awaiting-response detection."""

    @pytest.mark.asyncio
    async def test_org_members_are_tagged(self, populated_store, now) -> None:
        store = populated_store(1)
        store.update_meta(org_members=["Alice"])
        store.set_comments(
            1,
            [make_comment("alice", "Can you share logs?"), make_comment("reporter", "Here")],
            now,
        )
        kind = NeedsResponseKind(10)
        await kind.prepare(store)

        prompt = kind.build_prompt(store.get_issues())

        assert "Org members / maintainers: Alice" in prompt
        assert "@alice [ORG]" in prompt
        assert "@reporter (" in prompt
        assert "Author: reporter |" in prompt

    @pytest.mark.asyncio
    async def test_prompt_without_members(self, populated_store) -> None:
        store = populated_store(1)
        kind = NeedsResponseKind(10)
        await kind.prepare(store)

        prompt = kind.build_prompt(store.get_issues())

        assert "No org member list available" in prompt
        assert "(no comments)" in prompt

    def test_responded_is_not_reported(self, populated_store, now) -> None:
        store = populated_store(1, 2)
        kind = NeedsResponseKind(10)

        responded = kind.apply(
            store,
            store.get_issue(1),
            NeedsResponseItem(number=1, status="responded", reason="answered"),
            now,
        )
        new = kind.apply(
            store,
            store.get_issue(2),
            NeedsResponseItem(number=2, status="new-issue", reason="no comments"),
            now,
        )

        assert responded is None
        assert new.describe().startswith("[NEW]")
        assert store.get_issue(1).analysis.needs_response.status == "responded"


class TestDuplicates:
    """Test duplicate detection."""

    @pytest.mark.parametrize(
        "item",
        [
            DuplicateItem(number=2, duplicate_of=1, confidence=0.5, reason="similar"),
            DuplicateItem(number=2, duplicate_of=2, confidence=0.99, reason="itself"),
            DuplicateItem(number=2, duplicate_of=404, confidence=0.99, reason="gone"),
        ],
    )
    def test_rejected_pairs_are_recorded_as_not_duplicate(
        self, populated_store, now, item
    ) -> None:
        store = populated_store(1, 2)
        store.set_analysis(2, "duplicates", duplicate_of=1, confidence=0.9, reason="old")

        finding = DuplicatesKind(10, 0.8).apply(store, store.get_issue(2), item, now)

        assert finding is None
        result = store.get_issue(2).analysis.duplicates
        assert result.duplicate_of is None
        assert result.reason is None
        assert result.analyzed_at == now

    def test_accepted_pair(self, populated_store, now) -> None:
        store = populated_store(1, 2)

        finding = DuplicatesKind(10, 0.8).apply(
            store,
            store.get_issue(2),
            DuplicateItem(number=2, duplicate_of=1, confidence=0.8, reason="same crash"),
            now,
        )

        assert finding.original == 1
        assert finding.original_title == "Issue 1"
        assert finding.describe() == "duplicate of #1 (80%): same crash"

    @pytest.mark.asyncio
    async def test_knowledge_base_includes_closed_issues(self, populated_store) -> None:
        store = populated_store(1)
        store.upsert_issue(make_record(5, state="closed"))
        store.set_digest(5, make_digest())
        kind = DuplicatesKind(10, 0.8)
        await kind.prepare(store)

        prompt = kind.build_prompt(store.get_issues(state="open"))

        assert "#5 [bug]" in prompt
        assert "Minimum confidence to include: 0.80" in prompt


class TestSecurity:
    """Test the security scan."""

    @pytest.mark.asyncio
    async def test_flags_above_threshold_ordered_by_severity(
        self, populated_store, now
    ) -> None:
        store = populated_store(1, 2, 3, category="feature")
        classifier = ScriptedClassifier(
            SecurityResponse(
                findings=[
                    SecurityItem(
                        number=1,
                        is_security_related=True,
                        confidence=0.8,
                        category="data exposure",
                        severity="medium",
                        explanation="token in logs",
                    ),
                    SecurityItem(
                        number=2,
                        is_security_related=True,
                        confidence=0.9,
                        category="injection",
                        severity="critical",
                        explanation="unescaped SQL",
                    ),
                    SecurityItem(number=3, is_security_related=True, confidence=0.4),
                ]
            )
        )

        result = await AnalysisPipeline(store, classifier).run(
            SecurityKind(10, 0.7), now=now
        )

        assert [f.number for f in result.items] == [2, 1]
        assert result.items[0].describe().startswith("[critical] injection (90%)")
        assert store.get_issue(1).analysis.security.category == "data exposure"
        low = store.get_issue(3).analysis.security
        assert low.flagged is False
        assert low.severity is None

    def test_new_comments_make_issue_pending_again(self, populated_store, now) -> None:
        store = populated_store(1)
        store.set_analysis(1, "security", flagged=False, analyzed_at=now)
        kind = SecurityKind(10, 0.7)

        assert kind.candidates(store, recheck=False, now=now) == []

        later = now + timedelta(hours=2)
        store.set_comments(1, [make_comment("eve", "The token shows up in logs")], later)

        assert [i.number for i in kind.candidates(store, False, later)] == [1]


class TestGoodFirstIssue:
    """Test good first issue suggestions."""

    def test_already_labeled_issues_are_skipped(self, populated_store, now) -> None:
        store = populated_store(1)
        store.upsert_issue(make_record(2, labels=["good first issue"]))
        store.set_digest(2, make_digest())

        candidates = GoodFirstIssueKind(10).candidates(store, False, now)

        assert [i.number for i in candidates] == [1]

    def test_suitable_issue_is_recorded(self, populated_store, now) -> None:
        store = populated_store(1)

        finding = GoodFirstIssueKind(10).apply(
            store,
            store.get_issue(1),
            GoodFirstIssueItem(
                number=1,
                is_good_first_issue=True,
                reason="Small, isolated validation fix",
                code_hint="Start in forms/validators.py",
                estimated_complexity="trivial",
            ),
            now,
        )

        assert finding.complexity == "trivial"
        result = store.get_issue(1).analysis.good_first_issue
        assert result.suitable is True
        assert result.code_hint == "Start in forms/validators.py"

    def test_unsuitable_issue_clears_previous_hint(self, populated_store, now) -> None:
        store = populated_store(1)
        store.set_analysis(
            1, "good_first_issue", suitable=True, code_hint="old", analyzed_at=now
        )

        finding = GoodFirstIssueKind(10).apply(
            store,
            store.get_issue(1),
            GoodFirstIssueItem(number=1, is_good_first_issue=False),
            now,
        )

        assert finding is None
        result = store.get_issue(1).analysis.good_first_issue
        assert result.suitable is False
        assert result.code_hint is None
