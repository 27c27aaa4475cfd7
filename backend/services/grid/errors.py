# services/grid/errors.py


class GridError(Exception):
    """Base for every recoverable grid/rule failure."""


class ValidationReject(GridError):
    """A mutation is disallowed by policy; state is unchanged."""


class RowNotFound(GridError):
    """Referenced session or rule no longer exists."""


class LookupFailure(GridError):
    """Single-row lookup failed (not found or transport error)."""

    def __init__(self, key, reason: str = "not found"):
        super().__init__(f"Lookup failed for {key!r}: {reason}")
        self.key = key
        self.reason = reason


class ImportFailure(GridError):
    """Bulk import or search failed; the last good snapshot is kept."""
