"""
Rating Engine Exceptions

Error taxonomy for the rating engine.

- ValidationError: a rating config field is out of range. Raised before
  anything is written, so the active config is left unchanged.
- UnknownAlgorithmError: a config names a strategy the engine does not
  implement. Fails one computation; counted as a per-book failure in
  batch runs.
- DataUnavailableError: a book or its reviews could not be loaded.
  Per-book, retry-safe.
- InfrastructureFailureError: the corpus (or the active config) cannot be
  read at all. Aborts a whole recalculation run.
- RecalculationInProgressError: another recalculation with a different
  scope or config version is still running.
"""

from typing import Any


class RatingEngineError(Exception):
    """Base class for all rating engine errors."""

    pass


class ValidationError(RatingEngineError):
    """
    Raised when a rating config fails bounds validation.

    Attributes:
        errors: One {"field": ..., "message": ...} entry per offending field
        field: Name of the first offending field
    """

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        self.field = errors[0]["field"] if errors else None
        details = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"Invalid rating config ({details})")

    @property
    def fields(self) -> list[str]:
        """Names of all offending fields, in the order reported."""
        return [e["field"] for e in self.errors]

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """Build from a pydantic.ValidationError, one entry per field error."""
        errors = []
        for error in exc.errors():
            loc = error.get("loc") or ("__root__",)
            errors.append({
                "field": ".".join(str(part) for part in loc),
                "message": error.get("msg", "invalid value"),
            })
        return cls(errors)


class UnknownAlgorithmError(RatingEngineError):
    """Raised when a config references an algorithm with no strategy."""

    def __init__(self, algorithm: Any) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unknown rating algorithm: {algorithm!r}")


class DataUnavailableError(RatingEngineError):
    """Raised when a book or its reviews could not be loaded."""

    def __init__(self, book_id: int, reason: str) -> None:
        self.book_id = book_id
        self.reason = reason
        super().__init__(f"Data unavailable for book {book_id}: {reason}")


class InfrastructureFailureError(RatingEngineError):
    """Raised when the book corpus itself cannot be enumerated."""

    pass


class ConfigVersionNotFoundError(RatingEngineError):
    """Raised when a rating config version does not exist."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"Rating config version {version} not found")


class RecalculationInProgressError(RatingEngineError):
    """Raised when a recalculation is requested while an incompatible one runs."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Recalculation {job_id} is already running")
