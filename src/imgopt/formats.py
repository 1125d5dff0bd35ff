"""Source and target image formats.

Both sets are closed: discovery and the converter dispatch over these
enums instead of ad-hoc extension strings.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from imgopt.exceptions import UnsupportedFormatError


class SourceFormat(str, Enum):
    """Decodable input families."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    HEIF = "heif"
    GIF = "gif"
    TIFF = "tiff"
    BMP = "bmp"


class TargetFormat(str, Enum):
    """Output formats the pipeline can encode."""

    PNG = "png"
    JPG = "jpg"
    WEBP = "webp"

    @property
    def extension(self) -> str:
        """File extension including the dot."""
        return f".{self.value}"

    @property
    def pil_format(self) -> str:
        """Format name understood by ``PIL.Image.save``."""
        return _PIL_FORMATS[self]

    @property
    def supports_quality(self) -> bool:
        return self in (TargetFormat.JPG, TargetFormat.WEBP)


_PIL_FORMATS: dict[TargetFormat, str] = {
    TargetFormat.PNG: "PNG",
    TargetFormat.JPG: "JPEG",
    TargetFormat.WEBP: "WEBP",
}

EXTENSION_MAP: dict[str, SourceFormat] = {
    ".jpg": SourceFormat.JPEG,
    ".jpeg": SourceFormat.JPEG,
    ".png": SourceFormat.PNG,
    ".webp": SourceFormat.WEBP,
    ".heic": SourceFormat.HEIF,
    ".heif": SourceFormat.HEIF,
    ".gif": SourceFormat.GIF,
    ".tiff": SourceFormat.TIFF,
    ".bmp": SourceFormat.BMP,
}

# Aliases accepted on the command line and in config files
_TARGET_ALIASES: dict[str, TargetFormat] = {
    "png": TargetFormat.PNG,
    "jpg": TargetFormat.JPG,
    "jpeg": TargetFormat.JPG,
    "webp": TargetFormat.WEBP,
}


def detect_source_format(path: Path) -> SourceFormat | None:
    """Return the source family for ``path`` based on its extension.

    The match is case-insensitive; ``None`` means the file is not eligible.
    """
    return EXTENSION_MAP.get(path.suffix.lower())


def is_supported_source(path: Path) -> bool:
    return detect_source_format(path) is not None


def parse_target_format(value: str | TargetFormat) -> TargetFormat:
    """Parse a user-supplied target format.

    Raises:
        UnsupportedFormatError: If ``value`` is not png, jpg/jpeg or webp.
    """
    if isinstance(value, TargetFormat):
        return value
    fmt = _TARGET_ALIASES.get(value.strip().lower().lstrip("."))
    if fmt is None:
        raise UnsupportedFormatError(value, [f.value for f in TargetFormat])
    return fmt
