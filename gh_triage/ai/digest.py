"""Generate the compact per-issue digest that every analysis reads."""

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from ..store.manager import IssueStore
from ..store.models import DigestCategory, Issue, IssueDigest
from ..utils.batching import chunk
from .classifier import LLMClassifier
from .prompt_formatting import truncate

logger = logging.getLogger(__name__)


class DigestItem(BaseModel):
    number: int
    summary: str = Field(description="Concise one-line summary, max 100 chars")
    category: DigestCategory
    affected_area: str = Field(description="Part of the system affected")
    keywords: list[str] = Field(description="3-5 keywords for similarity matching")


class DigestResponse(BaseModel):
    digests: list[DigestItem]


def build_digest_prompt(issues: list[Issue]) -> str:
    issue_list = "\n\n---\n\n".join(
        f"#{i.number}: {i.title}\n{truncate(i.body)}" for i in issues
    )
    return f"""Analyze the following GitHub issues and generate a compact digest for each.

For each issue, provide:
- summary: A concise one-line summary (max 100 chars)
- category: One of: bug, feature, docs, chore, question, other
- affected_area: The part of the system affected (e.g. "auth", "API", "UI", "build")
- keywords: 3-5 keywords for similarity matching

Issues:
{issue_list}
"""


async def generate_digests(
    store: IssueStore,
    classifier: LLMClassifier,
    batch_size: int,
    now: datetime,
    dry_run: bool = False,
) -> int:
    """Digest every issue that has no digest yet.

    Batches whose response cannot be validated are skipped; their issues
    stay undigested and are picked up by the next call.

    Returns:
        Number of issues digested
    """
    pending = store.get_issues(has_digest=False)
    if not pending:
        return 0

    digested = 0
    batches = chunk(pending, batch_size)
    for index, batch in enumerate(batches, start=1):
        logger.info("Digesting batch %d/%d (%d issues)", index, len(batches), len(batch))
        try:
            response = await classifier.analyze(build_digest_prompt(batch), DigestResponse)
        except Exception:
            logger.exception("Digest batch %d/%d failed", index, len(batches))
            continue
        if response is None:
            continue

        for item in response.digests:
            if item.number not in store:
                continue
            store.set_digest(
                item.number,
                IssueDigest(
                    summary=item.summary,
                    category=item.category,
                    affected_area=item.affected_area,
                    keywords=item.keywords,
                    digested_at=now,
                ),
            )
            digested += 1

        if not dry_run:
            store.save()

    return digested
