"""Exception hierarchy for imgopt.

Error Hierarchy:
    ImgoptError (base)
    ├── ConfigurationError
    │   └── UnsupportedFormatError   (fatal, raised before any task runs)
    ├── DiscoveryError               (fatal, no tasks are produced)
    ├── NameAllocationExhausted      (only with a bounded attempt limit)
    └── ConversionError              (per-file, contained by the pool)
        ├── DecodeError
        ├── EncodeError
        └── OutputWriteError

Configuration and discovery errors propagate to the caller. Conversion
errors never leave the pipeline: the converter maps them to a Failure
outcome carrying a FailureReason.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from imgopt.results import FailureReason


class ImgoptError(Exception):
    """Base exception class for imgopt."""


class ConfigurationError(ImgoptError):
    """Invalid configuration or CLI arguments."""


class UnsupportedFormatError(ConfigurationError):
    """Requested target format is not one of the supported set."""

    def __init__(self, fmt: str, supported: list[str]) -> None:
        self.format = fmt
        self.supported = supported
        super().__init__(
            f"Unsupported target format: {fmt!r} (choose from {', '.join(supported)})"
        )


class DiscoveryError(ImgoptError):
    """Input root does not exist or cannot be read."""

    def __init__(self, root: Path, message: str) -> None:
        self.root = root
        super().__init__(f"Cannot scan {root}: {message}")


class NameAllocationExhausted(ImgoptError):
    """No free output name found within the configured attempt limit."""

    def __init__(self, desired: Path, attempts: int) -> None:
        self.desired = desired
        self.attempts = attempts
        super().__init__(f"No free output name for {desired} after {attempts} attempts")


class ConversionError(ImgoptError):
    """Error while converting a single file."""

    def __init__(
        self,
        file_path: Path,
        reason: FailureReason,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        self.file_path = file_path
        self.reason = reason
        self.message = message
        self.cause = cause
        super().__init__(f"Conversion failed for {file_path}: {message}")


class DecodeError(ConversionError):
    """Source image could not be decoded."""


class EncodeError(ConversionError):
    """Decoded image could not be encoded to the target format."""


class OutputWriteError(ConversionError):
    """Encoded bytes could not be written to the output directory."""
