"""Outcome values passed between the steps of a rewrite run.

Steps report what happened by returning a ``Result`` instead of raising:
the carried value, the warnings collected on the way (kept imports,
skipped files) or the exception that ended the step.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ResultStatus(Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Immutable step outcome.

    Build instances through ``success``, ``warning``, ``failure`` or
    ``skipped``. Only error results carry an exception and only
    non-error results carry data.
    """

    status: ResultStatus
    data: T | None = None
    error: Exception | None = None
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status == ResultStatus.ERROR:
            if self.data is not None:
                raise ValueError("Error results cannot have data")
        elif self.error is not None:
            raise ValueError(f"{self.status.value} results cannot have errors")

    @classmethod
    def success(cls, data: T, metadata: dict[str, Any] | None = None) -> "Result[T]":
        return cls(ResultStatus.SUCCESS, data=data, metadata=dict(metadata or {}))

    @classmethod
    def warning(cls, data: T, warnings: list[str], metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Successful outcome that still has something to report.

        Args:
            data: Value produced by the step.
            warnings: Messages for the user, in the order they arose.
            metadata: Optional extra information about the step.
        """
        return cls(ResultStatus.WARNING, data=data, warnings=list(warnings), metadata=dict(metadata or {}))

    @classmethod
    def failure(cls, error: Exception, metadata: dict[str, Any] | None = None) -> "Result[T]":
        return cls(ResultStatus.ERROR, error=error, metadata=dict(metadata or {}))

    @classmethod
    def skipped(cls, reason: str, metadata: dict[str, Any] | None = None) -> "Result[T]":
        """Outcome of a step that had nothing to do; ``reason`` lands in the metadata."""
        return cls(ResultStatus.SKIPPED, metadata={**(metadata or {}), "reason": reason})

    def is_success(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def is_warning(self) -> bool:
        return self.status == ResultStatus.WARNING

    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    def is_skipped(self) -> bool:
        return self.status == ResultStatus.SKIPPED

    def is_ok(self) -> bool:
        """True for success and warning results."""
        return self.status in (ResultStatus.SUCCESS, ResultStatus.WARNING)

    def with_warnings(self, warnings: list[str]) -> "Result[T]":
        """Return a copy that also carries ``warnings``.

        A success gains warning status; other statuses are kept. An empty
        list returns the result unchanged.
        """
        if not warnings:
            return self
        status = ResultStatus.WARNING if self.is_success() else self.status
        return replace(self, status=status, warnings=[*warnings, *self.warnings])

    def unwrap(self) -> T:
        """Return the carried data.

        Raises:
            Exception: The carried error for error results.
            RuntimeError: When the result was skipped or holds no data.
        """
        if self.error is not None:
            raise self.error
        if self.is_skipped():
            raise RuntimeError(f"Result was skipped: {self.metadata.get('reason', 'no reason given')}")
        if self.data is None:
            raise RuntimeError("Result contains no data")
        return self.data
