"""
Errors raised by the agent core.

Only persistence problems reach the caller. Malformed observations are
defaulted silently and numerical degeneracy is corrected in place, so the
host tick loop never sees an exception from inference or training.
"""


class AgentError(Exception):
    """Base class for all agent core errors."""


class WeightStoreError(AgentError):
    """A weights file could not be saved or applied."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        if path:
            message = f"{message} ({path})"
        super().__init__(message)


class ArchitectureMismatchError(WeightStoreError):
    """The file describes a different network topology than the running one."""


class WeightFormatError(WeightStoreError):
    """The file is unreadable, not valid JSON, or has inconsistent tensors."""
