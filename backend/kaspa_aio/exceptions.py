"""Exceptions raised by the installation-state core.

Expected absences (no document, no container, unreachable node) are return
values, not exceptions. What remains here is misuse and write-side failures.
"""


class KaspaAioError(Exception):
    """Base exception for the shared installation-state core."""

    pass


class StateError(KaspaAioError):
    """Base exception for installation-state operations."""

    pass


class StateValidationError(StateError, ValueError):
    """Raised when a document handed to the store is structurally invalid."""

    pass


class NoInstallationError(StateError):
    """Raised when an update targets an installation that does not exist."""

    pass


class InvalidPhaseTransitionError(StateError, ValueError):
    """Raised when a write would move the phase backwards."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move installation phase from '{current}' to '{requested}' "
            "without a reset"
        )
        self.current = current
        self.requested = requested


class StateConflictError(StateError):
    """Raised when a compare-and-swap write finds a newer document."""

    pass


class StateWriteError(StateError):
    """Raised when the storage backend fails to persist the document."""

    pass
