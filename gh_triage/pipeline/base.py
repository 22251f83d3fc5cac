"""Strategy interface implemented by every analysis kind."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Generic, Protocol, TypeVar

from pydantic import BaseModel

from ..store.manager import IssueStore
from ..store.models import Issue

ResponseT = TypeVar("ResponseT", bound=BaseModel)
ItemT = TypeVar("ItemT")
FindingT = TypeVar("FindingT", bound="Finding")


class Classifier(Protocol):
    """Anything that can turn a prompt into a validated response model."""

    async def analyze(
        self, prompt: str, response_model: type[ResponseT]
    ) -> ResponseT | None: ...


@dataclass
class Finding:
    """A reportable outcome for one issue."""

    number: int
    title: str
    html_url: str

    def describe(self) -> str:
        return self.title


class AnalysisKind(ABC, Generic[ItemT, FindingT]):
    """One analysis dimension, plugged into the generic pipeline.

    Subclasses decide which issues are eligible, how a batch is phrased
    for the classifier, and how each returned item is written back to the
    store. Instances are created per run and may keep run context (e.g.
    the repository label set) on ``self`` during ``prepare``.
    """

    name: ClassVar[str]
    """Analysis dimension key on ``IssueAnalysis``."""

    command: ClassVar[str]
    """Identifier used on the command line."""

    title: ClassVar[str]
    response_model: ClassVar[type[BaseModel]]

    done_message: ClassVar[str] = "All issues already analyzed. Use --recheck to re-run."
    no_findings_message: ClassVar[str] = "Nothing to report."
    closes_issues: ClassVar[bool] = False
    rechecks_on_new_comments: ClassVar[bool] = False

    def __init__(self, batch_size: int):
        self.batch_size = batch_size

    @abstractmethod
    def population(self, store: IssueStore, now: datetime) -> list[Issue]:
        """Every issue this kind could analyze, before the pending filter."""

    def is_pending(self, issue: Issue) -> bool:
        """Whether ``issue`` still needs this dimension without a recheck."""
        if issue.analyzed_at(self.name) is None:
            return True
        return self.rechecks_on_new_comments and issue.has_new_comments_since(
            self.name
        )

    def candidates(
        self, store: IssueStore, recheck: bool, now: datetime
    ) -> list[Issue]:
        population = self.population(store, now)
        if recheck:
            return population
        return [issue for issue in population if self.is_pending(issue)]

    async def prepare(self, store: IssueStore) -> str | None:
        """Resolve run preconditions.

        Returns:
            None when the run can proceed, otherwise a message explaining
            why it cannot. Tracker errors are allowed to propagate.
        """
        return None

    @abstractmethod
    def build_prompt(self, batch: list[Issue]) -> str: ...

    async def classify(
        self, classifier: Classifier, batch: list[Issue]
    ) -> BaseModel | None:
        return await classifier.analyze(self.build_prompt(batch), self.response_model)

    @abstractmethod
    def result_items(self, response: Any) -> Sequence[ItemT]:
        """Per-issue items of a validated response. Each has a ``number``."""

    @abstractmethod
    def apply(
        self, store: IssueStore, issue: Issue, item: ItemT, now: datetime
    ) -> FindingT | None:
        """Record one result item and return a finding if it is reportable."""

    def mark_analyzed(self, store: IssueStore, issue: Issue, now: datetime) -> None:
        """Record that ``issue`` was checked but no result came back for it."""
        store.set_analysis(issue.number, self.name, analyzed_at=now)

    def finalize(self, findings: list[FindingT]) -> list[FindingT]:
        return findings
