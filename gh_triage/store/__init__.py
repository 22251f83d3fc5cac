"""Issue store: entity model, change detection and persistence."""

from .change_detector import UpsertAction, content_fingerprint
from .manager import STORE_FILENAME, IssueStore
from .models import (
    DIMENSIONS,
    Comment,
    Issue,
    IssueAnalysis,
    IssueDigest,
    StoreMeta,
    TrackerIssue,
)

__all__ = [
    "DIMENSIONS",
    "STORE_FILENAME",
    "Comment",
    "Issue",
    "IssueAnalysis",
    "IssueDigest",
    "IssueStore",
    "StoreMeta",
    "TrackerIssue",
    "UpsertAction",
    "content_fingerprint",
]
