"""Converter boundary: one input file in, one outcome out.

The pipeline only sees the ``Converter`` protocol. ``PillowConverter`` is
the production adapter: it claims a collision-safe destination from the
run's ``OutputNameAllocator``, decodes with Pillow (HEIC/HEIF through
pillow-heif), optionally downscales, encodes in memory and writes the
result atomically. Every failure is mapped to a ``Failure`` outcome.
"""

from __future__ import annotations

import errno
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from imgopt.allocator import OutputNameAllocator
from imgopt.constants import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_DIMENSION,
    DEFAULT_PNG_COMPRESS_LEVEL,
    DEFAULT_WEBP_QUALITY,
)
from imgopt.exceptions import (
    ConversionError,
    DecodeError,
    EncodeError,
    NameAllocationExhausted,
    OutputWriteError,
    UnsupportedFormatError,
)
from imgopt.formats import TargetFormat, detect_source_format, parse_target_format
from imgopt.results import ConversionOutcome, Failure, FailureReason, Success
from imgopt.utils.fs import atomic_write_bytes
from imgopt.utils.text import format_error_message

register_heif_opener()

# Modes the PNG encoder writes without conversion
_PNG_MODES = frozenset({"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"})


@dataclass(frozen=True)
class ConversionOptions:
    """Format-specific knobs passed with every conversion.

    Attributes:
        webp_quality: Lossy WebP quality (1-100)
        jpeg_quality: JPEG quality (1-100)
        max_dimension: Images are downscaled to fit a square of this size
        no_limit: Skip downscaling entirely
        png_compress_level: zlib level for PNG output (0-9)
    """

    webp_quality: int = DEFAULT_WEBP_QUALITY
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    max_dimension: int = DEFAULT_MAX_DIMENSION
    no_limit: bool = False
    png_compress_level: int = DEFAULT_PNG_COMPRESS_LEVEL


class Converter(Protocol):
    """Anything that converts one file and reports the outcome.

    Implementations must not raise: every problem becomes a ``Failure``.
    """

    def convert(
        self,
        path: Path,
        target: TargetFormat | str,
        output_dir: Path,
        options: ConversionOptions,
    ) -> ConversionOutcome: ...


class PillowConverter:
    """Converter backed by Pillow and pillow-heif."""

    def __init__(self, allocator: OutputNameAllocator) -> None:
        self.allocator = allocator

    def convert(
        self,
        path: Path,
        target: TargetFormat | str,
        output_dir: Path,
        options: ConversionOptions,
    ) -> ConversionOutcome:
        path = Path(path)
        try:
            return self._convert(path, target, Path(output_dir), options)
        except ConversionError as e:
            logger.debug(f"{path.name}: {e.reason.value}: {e.message}")
            return Failure(input_path=path, reason=e.reason, message=e.message)
        except Exception as e:
            logger.opt(exception=e).debug(f"Unexpected error converting {path}")
            return Failure(
                input_path=path,
                reason=FailureReason.UNEXPECTED,
                message=format_error_message(e),
            )

    def _convert(
        self,
        path: Path,
        target: TargetFormat | str,
        output_dir: Path,
        options: ConversionOptions,
    ) -> Success:
        if detect_source_format(path) is None:
            raise ConversionError(
                path,
                FailureReason.UNSUPPORTED_EXTENSION,
                f"unsupported extension: {path.suffix or '(none)'}",
            )
        try:
            fmt = parse_target_format(target)
        except UnsupportedFormatError as e:
            raise ConversionError(
                path, FailureReason.UNSUPPORTED_TARGET, str(e), cause=e
            ) from e

        output_path = self._claim(path, output_dir / f"{path.stem}{fmt.extension}")
        try:
            image = self._decode(path)
            if not options.no_limit:
                image.thumbnail(
                    (options.max_dimension, options.max_dimension),
                    Image.Resampling.LANCZOS,
                )
            data = self._encode(path, image, fmt, options)
            self._write(path, output_path, data)
        except Exception:
            # Nothing was written at the claimed path
            self.allocator.release(output_path)
            raise

        return Success(input_path=path, output_path=output_path)

    def _claim(self, path: Path, desired: Path) -> Path:
        try:
            return self.allocator.allocate(desired)
        except NameAllocationExhausted as e:
            raise OutputWriteError(path, FailureReason.IO_ERROR, str(e), cause=e) from e
        except OSError as e:
            raise _write_error(path, e) from e

    def _decode(self, path: Path) -> Image.Image:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DecodeError(
                path,
                FailureReason.UNREADABLE_SOURCE,
                f"cannot read source: {format_error_message(e)}",
                cause=e,
            ) from e

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                # exif_transpose returns a copy when it rotates, so detach either way
                return ImageOps.exif_transpose(img).copy()
        except Exception as e:
            raise DecodeError(
                path,
                FailureReason.DECODE_ERROR,
                f"cannot decode image: {format_error_message(e)}",
                cause=e,
            ) from e

    def _encode(
        self,
        path: Path,
        image: Image.Image,
        fmt: TargetFormat,
        options: ConversionOptions,
    ) -> bytes:
        save_kwargs: dict[str, Any] = {"format": fmt.pil_format}
        if fmt is TargetFormat.JPG:
            save_kwargs["quality"] = options.jpeg_quality
            save_kwargs["optimize"] = True
        elif fmt is TargetFormat.WEBP:
            save_kwargs["quality"] = options.webp_quality
            save_kwargs["lossless"] = False
        elif fmt is TargetFormat.PNG:
            save_kwargs["optimize"] = True
            save_kwargs["compress_level"] = options.png_compress_level

        buffer = io.BytesIO()
        try:
            _prepare_mode(image, fmt).save(buffer, **save_kwargs)
        except Exception as e:
            raise EncodeError(
                path,
                FailureReason.ENCODE_ERROR,
                f"cannot encode {fmt.value}: {format_error_message(e)}",
                cause=e,
            ) from e
        return buffer.getvalue()

    def _write(self, path: Path, output_path: Path, data: bytes) -> None:
        try:
            atomic_write_bytes(output_path, data)
        except OSError as e:
            raise _write_error(path, e) from e
        logger.debug(f"Wrote {output_path} ({len(data)} bytes)")


def _prepare_mode(image: Image.Image, fmt: TargetFormat) -> Image.Image:
    """Convert ``image`` to a mode the target encoder accepts."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )

    if fmt is TargetFormat.JPG:
        if has_alpha:
            # JPEG has no alpha channel: flatten onto white
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if image.mode not in ("RGB", "L", "CMYK"):
            return image.convert("RGB")
        return image

    if fmt is TargetFormat.WEBP:
        if image.mode not in ("RGB", "RGBA"):
            return image.convert("RGBA" if has_alpha else "RGB")
        return image

    if image.mode not in _PNG_MODES:
        return image.convert("RGBA" if has_alpha else "RGB")
    return image


def _write_error(path: Path, error: OSError) -> OutputWriteError:
    if error.errno == errno.ENOSPC:
        reason = FailureReason.DISK_FULL
    elif isinstance(error, PermissionError) or error.errno in (errno.EACCES, errno.EPERM):
        reason = FailureReason.PERMISSION_DENIED
    else:
        reason = FailureReason.IO_ERROR
    return OutputWriteError(
        path, reason, f"cannot write output: {format_error_message(error)}", cause=error
    )
