"""Tests for digest generation."""

import pytest
from conftest import ScriptedClassifier, make_record

from gh_triage.ai.digest import (
    DigestItem,
    DigestResponse,
    build_digest_prompt,
    generate_digests,
)
from gh_triage.store.manager import IssueStore


def digest_item(number: int, category: str = "bug") -> DigestItem:
    return DigestItem(
        number=number,
        summary=f"Summary {number}",
        category=category,
        affected_area="auth",
        keywords=["login", "token"],
    )


class TestBuildDigestPrompt:
    """Test build_digest_prompt."""

    def test_lists_each_issue(self, store) -> None:
        store.upsert_issue(make_record(1))
        store.upsert_issue(make_record(2, body="x" * 5000))

        prompt = build_digest_prompt(store.get_issues())

        assert "#1: Issue 1\nBody of issue 1" in prompt
        assert "#2: Issue 2" in prompt
        assert "x" * 2001 not in prompt


class TestGenerateDigests:
    """Test generate_digests."""

    @pytest.mark.asyncio
    async def test_digests_only_missing_issues(self, populated_store, now) -> None:
        store = populated_store(1)
        store.upsert_issue(make_record(2))
        store.save()
        classifier = ScriptedClassifier(DigestResponse(digests=[digest_item(2)]))

        count = await generate_digests(store, classifier, batch_size=10, now=now)

        assert count == 1
        assert "#1:" not in classifier.prompts[0]
        digest = store.get_issue(2).digest
        assert digest.category == "bug"
        assert digest.digested_at == now
        saved = IssueStore.load_or_none(store.file_path.parent)
        assert saved.get_issue(2).digest is not None

    @pytest.mark.asyncio
    async def test_nothing_pending(self, populated_store, now) -> None:
        store = populated_store(1)

        assert await generate_digests(store, ScriptedClassifier(), 10, now) == 0

    @pytest.mark.asyncio
    async def test_failed_batch_is_skipped(self, store, now) -> None:
        for number in (1, 2, 3):
            store.upsert_issue(make_record(number))
        classifier = ScriptedClassifier(
            None, DigestResponse(digests=[digest_item(3), digest_item(404)])
        )

        count = await generate_digests(store, classifier, batch_size=2, now=now)

        assert count == 1
        assert store.get_issue(1).digest is None
        assert store.get_issue(3).digest is not None
        assert len(classifier.prompts) == 2

    @pytest.mark.asyncio
    async def test_dry_run_does_not_save(self, store, now) -> None:
        store.upsert_issue(make_record(1))
        store.save()
        before = store.file_path.read_bytes()
        classifier = ScriptedClassifier(DigestResponse(digests=[digest_item(1)]))

        await generate_digests(store, classifier, 10, now, dry_run=True)

        assert store.get_issue(1).digest is not None
        assert store.file_path.read_bytes() == before
