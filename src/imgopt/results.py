"""Outcome and summary types for a conversion run.

State transitions of a single task:

    PENDING -> DISPATCHED -> Success
                          -> Failure
    PENDING -> not_started          (run cancelled before dispatch)

Every dispatched task produces exactly one ConversionOutcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union


class FailureReason(str, Enum):
    """Classification attached to every Failure outcome."""

    UNREADABLE_SOURCE = "unreadable_source"
    UNSUPPORTED_EXTENSION = "unsupported_extension"
    UNSUPPORTED_TARGET = "unsupported_target"
    DECODE_ERROR = "decode_error"
    ENCODE_ERROR = "encode_error"
    DISK_FULL = "disk_full"
    PERMISSION_DENIED = "permission_denied"
    IO_ERROR = "io_error"
    TIMEOUT = "timeout"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Success:
    """A file was converted and written to ``output_path``."""

    input_path: Path
    output_path: Path

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A file could not be converted; no output file exists for it."""

    input_path: Path
    reason: FailureReason
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


ConversionOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class ProcessSummary:
    """Aggregate of all outcomes of one run.

    Attributes:
        total: Number of discovered files submitted to the pool
        success_count: Files converted successfully
        failure_count: Files that produced a Failure outcome
        failed_paths: Failed input paths, in the order outcomes arrived
        outputs: Output paths of successful conversions
        failure_reasons: Count of failures per reason
        not_started: Files never dispatched because the run was cancelled
        cancelled: Whether the run was stopped before all files were dispatched
        duration: Wall-clock seconds from first dispatch to settlement
    """

    total: int
    success_count: int
    failure_count: int
    failed_paths: tuple[Path, ...] = ()
    outputs: tuple[Path, ...] = ()
    failure_reasons: dict[FailureReason, int] = field(default_factory=dict)
    failures: tuple[Failure, ...] = ()
    not_started: tuple[Path, ...] = ()
    cancelled: bool = False
    duration: float = 0.0

    @property
    def processed(self) -> int:
        return self.success_count + self.failure_count

    @property
    def complete(self) -> bool:
        """True when every submitted file has an outcome."""
        return not self.cancelled and self.processed == self.total

    @property
    def all_succeeded(self) -> bool:
        return self.complete and self.failure_count == 0

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "total": self.total,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "failed_paths": [str(p) for p in self.failed_paths],
            "failures": [
                {
                    "path": str(f.input_path),
                    "reason": f.reason.value,
                    "message": f.message,
                }
                for f in self.failures
            ],
            "not_started": [str(p) for p in self.not_started],
            "cancelled": self.cancelled,
            "duration": round(self.duration, 3),
        }
