"""
Exception taxonomy for the governance core.

Services raise these for validation failures, illegal state changes and
storage outages. Not-found conditions are not exceptions: lookups return
None or empty collections and the caller decides how to present absence.

The API layer maps each class onto an HTTP status:
    ValidationFailedError    -> 400
    InvalidTransitionError   -> 409
    StorageUnavailableError  -> 503
"""


class GovernanceError(Exception):
    """Base class for every error raised by the governance core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailedError(GovernanceError):
    """Input rejected before any write took place."""


class InvalidTransitionError(GovernanceError):
    """Experiment status change not permitted by the state machine."""


class StorageUnavailableError(GovernanceError):
    """The persistent store could not complete a round trip."""


class QuotaUnavailableError(StorageUnavailableError):
    """Quota counters could not be read or written; sends must be refused."""
