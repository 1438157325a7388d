"""Exception taxonomy for StarRocks-Experts.

Provides:
- DiagnosticsError: Base class for all package errors
- CollectionError: A single collection query failed
- PreconditionError: Domain rules do not apply to the current cluster
- ExpertFailure: Unexpected failure inside one expert's pipeline
- ConfigurationError: Malformed rule set or expert metadata
"""

from typing import Optional


class DiagnosticsError(Exception):
    """Base class for all StarRocks-Experts errors."""


class CollectionError(DiagnosticsError):
    """A named collection query failed.

    Raised by data source handles and recovered inside the collector,
    where the affected snapshot key falls back to its default value.

    Parameters
    ----------
    statement : str
        SQL statement that failed
    cause : Exception, optional
        Underlying driver exception
    """

    def __init__(self, statement: str, cause: Optional[BaseException] = None):
        self.statement = statement
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Query failed{detail} [{_shorten(statement)}]")


class PreconditionError(DiagnosticsError):
    """Domain rules are inapplicable to the current cluster topology.

    Parameters
    ----------
    expert : str
        Expert name
    message : str
        Human-readable explanation
    """

    def __init__(self, expert: str, message: str):
        self.expert = expert
        super().__init__(f"[{expert}] {message}")


class ExpertFailure(DiagnosticsError):
    """Unexpected exception from one expert, isolated by the coordinator.

    Parameters
    ----------
    expert : str
        Expert name
    cause : Exception
        Original exception
    """

    def __init__(self, expert: str, cause: BaseException):
        self.expert = expert
        self.cause = cause
        super().__init__(f"Expert '{expert}' failed: {type(cause).__name__}: {cause}")

    @property
    def error_type(self) -> str:
        """Class name of the original exception."""
        return type(self.cause).__name__

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "expert": self.expert,
            "error_type": self.error_type,
            "message": str(self.cause),
            "precondition_failed": isinstance(self.cause, PreconditionError),
        }


class ConfigurationError(DiagnosticsError):
    """Malformed rule set or missing expert metadata (fatal at construction)."""


def _shorten(statement: str, limit: int = 120) -> str:
    flat = " ".join(statement.split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."
