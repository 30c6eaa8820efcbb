"""Error taxonomy for the versioned store."""

# purpose: give callers one hierarchy to translate store failures into user-facing messages
# status: active


class VersioningError(RuntimeError):
    """Base error for versioned store operations."""


class NotFound(VersioningError):
    """Raised when an operation targets an entry with no current or valid version."""

    def __init__(self, kind: str, entry: int, detail: str | None = None) -> None:
        self.kind = kind
        self.entry = entry
        message = detail or f"{kind} entry {entry} has no current version"
        super().__init__(message)


class ValidationError(VersioningError):
    """Raised when attributes are malformed or reference unknown entries."""

    def __init__(self, errors: dict[str, str] | str) -> None:
        if isinstance(errors, str):
            errors = {"__root__": errors}
        self.errors = dict(errors)
        super().__init__(
            "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        )


class InvariantViolation(VersioningError):
    """Raised when the store is observed in a structurally impossible state."""


class StorageFailure(VersioningError):
    """Raised when a transaction could not commit."""


class RevisionConflict(StorageFailure):
    """Raised when a concurrent revision superseded the version being edited."""
