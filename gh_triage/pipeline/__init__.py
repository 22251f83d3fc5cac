"""Batched analysis pipeline."""

from ..utils.batching import chunk
from .base import AnalysisKind, Classifier, Finding
from .runner import (
    AnalysisPipeline,
    AnalysisResult,
    RunAllReport,
    RunOutcome,
    flagged_for_closing,
)

__all__ = [
    "AnalysisKind",
    "AnalysisPipeline",
    "AnalysisResult",
    "Classifier",
    "Finding",
    "RunAllReport",
    "RunOutcome",
    "chunk",
    "flagged_for_closing",
]
