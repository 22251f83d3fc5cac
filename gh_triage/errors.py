"""Exception hierarchy shared by the store, tracker client and CLI."""


class TriageError(Exception):
    """Base class for all gh-triage errors."""


class ConfigError(TriageError):
    """Configuration file could not be read or validated."""


class StoreError(TriageError):
    """Problem with the persisted issue store."""


class StoreAlreadyExists(StoreError):
    """A store file already exists at the requested location."""

    def __init__(self, path: object):
        super().__init__(f"Store already exists at {path}. Use --force to reinitialize.")
        self.path = path


class CorruptStore(StoreError):
    """The store file exists but cannot be parsed."""

    def __init__(self, path: object, reason: str):
        super().__init__(f"Store file {path} is corrupt: {reason}")
        self.path = path
        self.reason = reason


class TrackerError(TriageError):
    """Remote issue tracker call failed."""


class Unauthorized(TrackerError):
    """Tracker rejected the credentials."""


class RateLimited(TrackerError):
    """Tracker rate limit exceeded or access forbidden."""


class NotFound(TrackerError):
    """Repository or issue does not exist or is inaccessible."""
