"""
ExLab - Error Types

Runtime errors raised by the provisioning collaborators and validation
errors raised at the catalog boundary. Collaborators chain the engine
exception (``raise ... from exc``) so callers can inspect ``__cause__``.
"""

from typing import Optional


class ExerciseLabError(Exception):
    """Base exception for all ExLab errors."""
    pass


class ProvisioningError(ExerciseLabError):
    """Raised when a container or VM cannot be created."""
    pass


class NetworkBindError(ExerciseLabError):
    """Raised when an instance cannot be bound to the exercise network."""
    pass


class LifecycleError(ExerciseLabError):
    """Raised when start/stop/close fails on an existing instance."""
    pass


class LabNotFoundError(ExerciseLabError, LookupError):
    """Raised when a lab id is not known to the lab manager."""
    pass


class ValidationError(ExerciseLabError, ValueError):
    """Raised for malformed input at the catalog boundary."""
    pass


class MissingTagsError(ValidationError):
    """No tags, need at least one tag."""

    def __init__(self, message: str = "No tags, need at least one tag") -> None:
        super().__init__(message)


class UnknownTagError(ValidationError):
    """Tag is malformed or not registered."""

    def __init__(self, tag: str, message: Optional[str] = None) -> None:
        self.tag = tag
        super().__init__(message or f"Unknown tag: {tag!r}")


class DuplicateTagError(ValidationError):
    """Tag is already registered."""

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Tag already exists: {tag!r}")


class EmptyVarError(ValidationError):
    """A required configuration variable is empty."""

    def __init__(self, var: str, kind: str) -> None:
        self.var = var
        self.kind = kind
        super().__init__(f"{var} cannot be empty for {kind}")


class EventNotFoundError(ExerciseLabError, LookupError):
    """Raised when no event is configured on this instance."""
    pass


class CatalogError(ExerciseLabError):
    """Raised when the exercise catalog service cannot be reached."""
    pass
