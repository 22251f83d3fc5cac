"""Analysis kinds and their registry."""

from collections.abc import Callable
from typing import Any, Protocol

from ..config import Settings
from ..pipeline.base import AnalysisKind
from .claims import ClaimsKind
from .done import DoneKind, PullRequestSource
from .duplicates import DuplicatesKind
from .good_first_issue import GoodFirstIssueKind
from .labels import LabelsKind, LabelSource
from .missing_info import MissingInfoKind
from .needs_response import NeedsResponseKind
from .priority import PriorityKind
from .quality import QualityKind
from .recurring import RecurringKind
from .security import SecurityKind
from .stale import StaleKind


class Tracker(LabelSource, PullRequestSource, Protocol):
    """Tracker reads the analyses themselves depend on."""


KindFactory = Callable[[Settings, Tracker | None], AnalysisKind[Any, Any]]

NEEDS_TRACKER = frozenset({"labels", "done-detector"})


def _require(tracker: Tracker | None, name: str) -> Tracker:
    if tracker is None:
        raise ValueError(f"The {name} analysis needs a GitHub client")
    return tracker


_REGISTRY: dict[str, KindFactory] = {
    "duplicates": lambda s, _: DuplicatesKind(
        s.sync.duplicates_batch_size, s.sync.min_duplicate_confidence
    ),
    "done-detector": lambda s, t: DoneKind(
        s.sync.done_batch_size, s.sync.min_done_confidence, _require(t, "done-detector")
    ),
    "labels": lambda s, t: LabelsKind(s.sync.labels_batch_size, _require(t, "labels")),
    "priority": lambda s, _: PriorityKind(s.sync.priority_batch_size),
    "quality": lambda s, _: QualityKind(s.sync.quality_batch_size),
    "missing-info": lambda s, _: MissingInfoKind(s.sync.missing_info_batch_size),
    "recurring": lambda s, _: RecurringKind(s.sync.recurring_batch_size),
    "stale": lambda s, _: StaleKind(
        s.sync.stale_batch_size, s.sync.stale_days_threshold, s.sync.stale_close_days
    ),
    "claims": lambda s, _: ClaimsKind(),
    "needs-response": lambda s, _: NeedsResponseKind(s.sync.needs_response_batch_size),
    "security": lambda s, _: SecurityKind(
        s.sync.security_batch_size, s.sync.min_security_confidence
    ),
    "good-first-issue": lambda s, _: GoodFirstIssueKind(
        s.sync.good_first_issue_batch_size
    ),
}


def available_kinds() -> list[str]:
    """Command names of every registered analysis, close detection first."""
    return list(_REGISTRY)


def get_kind(
    name: str, settings: Settings, tracker: Tracker | None = None
) -> AnalysisKind[Any, Any]:
    """Build a fresh analysis kind for one run.

    Raises:
        KeyError: If ``name`` is not a registered analysis
        ValueError: If the kind needs a tracker and none was given
    """
    factory = _REGISTRY.get(name)
    if factory is None:
        raise KeyError(
            f"Unknown analysis '{name}'. Available: {', '.join(available_kinds())}"
        )
    return factory(settings, tracker)


__all__ = [
    "NEEDS_TRACKER",
    "AnalysisKind",
    "ClaimsKind",
    "DoneKind",
    "DuplicatesKind",
    "GoodFirstIssueKind",
    "LabelsKind",
    "MissingInfoKind",
    "NeedsResponseKind",
    "PriorityKind",
    "QualityKind",
    "RecurringKind",
    "SecurityKind",
    "StaleKind",
    "Tracker",
    "available_kinds",
    "get_kind",
]
