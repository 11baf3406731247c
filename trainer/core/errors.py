"""Domain errors for the trainer core.

Validation and generation failures get their own types so callers can tell
a bad request from a misbehaving model. Store errors that are not timeouts
are left as SQLAlchemy raised them.
"""


class TrainerError(Exception):
    """Base exception for all trainer errors."""

    pass


class InvalidActionError(TrainerError):
    """Raised when caller-supplied input cannot be applied (e.g., time_scale without a target)."""

    pass


class GenerationFailedError(TrainerError):
    """Raised when model output is empty, unparseable or structurally invalid."""

    pass


class NotFoundError(TrainerError):
    """Raised when a required session, instance, exercise or program does not exist."""

    pass


class VersionConflictError(TrainerError):
    """Raised when a tracked exercise was changed since the caller last read it."""

    def __init__(self, message: str, current_version: int):
        super().__init__(message)
        self.current_version = current_version


class StoreTimeoutError(TrainerError):
    """Raised when a store operation exceeds the configured timeout."""

    pass
