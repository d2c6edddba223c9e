"""Result type returned by workflow actions."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Why an action failed."""
    NOT_FOUND = "not-found"
    INVALID_TRANSITION = "invalid-state-transition"
    CONSISTENCY = "consistency"
    ACCESS_DENIED = "access-denied"
    REPOSITORY = "repository"


@dataclass
class ActionResult:
    """Outcome of a workflow action.

    Failures are returned, not raised, so callers running many actions in a
    batch can record them and carry on.
    """
    success: bool
    value: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, value: Any = None) -> "ActionResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, error: str) -> "ActionResult":
        return cls(success=False, error=error, error_kind=kind)

    @classmethod
    def not_found(cls, what: str) -> "ActionResult":
        return cls.fail(ErrorKind.NOT_FOUND, f"{what} not found")
