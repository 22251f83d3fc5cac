"""Persistent issue store backed by a single JSON document."""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import CorruptStore, StoreAlreadyExists
from .change_detector import UpsertAction, apply_change, build_issue
from .models import (
    DIMENSIONS,
    Comment,
    Issue,
    IssueDigest,
    StateFilter,
    StoreDocument,
    StoreMeta,
    TrackerIssue,
)

logger = logging.getLogger(__name__)

STORE_FILENAME = "store.json"


class IssueStore:
    """In-memory index of issues plus metadata, saved atomically to disk.

    The store is the only component that mutates persisted state. Mutation
    methods change memory only; ``save`` writes the whole document.
    """

    def __init__(self, document: StoreDocument, file_path: Path):
        """Initialize the store from an already-parsed document.

        Args:
            document: Parsed store document
            file_path: Location of the store JSON file
        """
        self.file_path = file_path
        self._meta = document.meta
        # dicts preserve insertion order, which is the first-seen order
        self._issues: dict[int, Issue] = {i.number: i for i in document.issues}

    @staticmethod
    def exists(root: str | Path) -> bool:
        """Whether a store file is present under ``root``."""
        return (Path(root) / STORE_FILENAME).exists()

    @classmethod
    def initialize(
        cls, root: str | Path, owner: str, repo: str, force: bool = False
    ) -> "IssueStore":
        """Create and save an empty store.

        Args:
            root: Store directory
            owner: Repository owner
            repo: Repository name
            force: Overwrite an existing store

        Returns:
            The new store

        Raises:
            StoreAlreadyExists: If a store file exists and ``force`` is False
        """
        file_path = Path(root) / STORE_FILENAME
        if file_path.exists() and not force:
            raise StoreAlreadyExists(file_path)

        store = cls(StoreDocument(meta=StoreMeta(owner=owner, repo=repo)), file_path)
        store.save()
        logger.info("Initialized store for %s/%s at %s", owner, repo, file_path)
        return store

    @classmethod
    def load_or_none(cls, root: str | Path) -> "IssueStore | None":
        """Load the store at ``root``.

        Returns:
            The store, or None if no store file exists

        Raises:
            CorruptStore: If the file exists but cannot be parsed
        """
        file_path = Path(root) / STORE_FILENAME
        if not file_path.exists():
            return None

        try:
            raw = file_path.read_text(encoding="utf-8")
            document = StoreDocument.model_validate_json(raw)
        except (OSError, UnicodeDecodeError) as e:
            raise CorruptStore(file_path, str(e)) from e
        except ValidationError as e:
            raise CorruptStore(file_path, f"{e.error_count()} validation error(s)") from e

        return cls(document, file_path)

    def __len__(self) -> int:
        return len(self._issues)

    def __contains__(self, number: object) -> bool:
        return number in self._issues

    def get_issue(self, number: int) -> Issue | None:
        return self._issues.get(number)

    def get_issues(
        self, state: StateFilter = "all", has_digest: bool | None = None
    ) -> list[Issue]:
        """Return issues matching every given predicate, in first-seen order.

        Args:
            state: 'open', 'closed' or 'all'
            has_digest: Require (True) or exclude (False) digested issues;
                None disables the check

        Returns:
            A new list; mutating it does not affect the store
        """
        issues = list(self._issues.values())
        if state != "all":
            issues = [i for i in issues if i.state == state]
        if has_digest is True:
            issues = [i for i in issues if i.digest is not None]
        elif has_digest is False:
            issues = [i for i in issues if i.digest is None]
        return issues

    def upsert_issue(self, record: TrackerIssue) -> UpsertAction:
        """Insert or update an issue from a tracker record. Does not save."""
        existing = self._issues.get(record.number)
        if existing is None:
            self._issues[record.number] = build_issue(record)
            return UpsertAction.CREATED
        return apply_change(existing, record)

    def set_digest(self, number: int, digest: IssueDigest) -> None:
        issue = self._lookup(number)
        if issue is not None:
            issue.digest = digest

    def set_comments(
        self, number: int, comments: list[Comment], fetched_at: datetime
    ) -> None:
        issue = self._lookup(number)
        if issue is not None:
            issue.comments = list(comments)
            issue.comments_fetched_at = fetched_at

    def set_analysis(self, number: int, dimension: str, **fields: Any) -> None:
        """Merge ``fields`` into one analysis dimension of an issue.

        Fields not named are left as they are; other dimensions are never
        touched. Unknown issue numbers are ignored.

        Raises:
            KeyError: If ``dimension`` is not a known analysis dimension
            pydantic.ValidationError: If a field value has the wrong type
        """
        model = DIMENSIONS.get(dimension)
        if model is None:
            raise KeyError(f"Unknown analysis dimension: {dimension}")

        issue = self._lookup(number)
        if issue is None:
            return

        current = getattr(issue.analysis, dimension)
        merged = current.model_dump() if current is not None else {}
        merged.update(fields)
        setattr(issue.analysis, dimension, model.model_validate(merged))

    def update_meta(self, **fields: Any) -> None:
        merged = self._meta.model_dump()
        merged.update(fields)
        self._meta = StoreMeta.model_validate(merged)

    def get_meta(self) -> StoreMeta:
        return self._meta.model_copy(deep=True)

    def to_document(self) -> StoreDocument:
        return StoreDocument(meta=self._meta, issues=list(self._issues.values()))

    def save(self) -> None:
        """Write the full store atomically.

        The document is written to a temporary file in the target directory
        and renamed over the store file, so a crash never leaves a partial
        store behind.
        """
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.to_document().model_dump_json(indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.file_path.parent, prefix=f".{STORE_FILENAME}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.file_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("Saved %d issues to %s", len(self._issues), self.file_path)

    def _lookup(self, number: int) -> Issue | None:
        issue = self._issues.get(number)
        if issue is None:
            logger.debug("Ignoring update for unknown issue #%d", number)
        return issue
