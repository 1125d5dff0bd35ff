"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image

# =============================================================================
# Image Fixtures
# =============================================================================

_PIL_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
    ".gif": "GIF",
    ".bmp": "BMP",
    ".tiff": "TIFF",
}


def write_image(
    path: Path,
    size: tuple[int, int] = (64, 48),
    mode: str = "RGB",
    color: tuple[int, ...] | int = (200, 30, 30),
) -> Path:
    """Write a solid-color image whose format follows the extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    image = Image.new(mode, size, color)
    if suffix in (".heic", ".heif"):
        from pillow_heif import from_pillow

        from_pillow(image.convert("RGB")).save(str(path), quality=90)
    else:
        image.save(path, format=_PIL_FORMATS[suffix])
    return path


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """Return the ``write_image`` helper."""
    return write_image


@pytest.fixture
def image_dir(tmp_path: Path) -> Path:
    """Directory with two convertible images and one text file."""
    root = tmp_path / "photos"
    write_image(root / "a.png")
    write_image(root / "b.jpg", size=(80, 60))
    (root / "notes.txt").write_text("not an image")
    return root


@pytest.fixture
def corrupt_image(tmp_path: Path) -> Path:
    """A file with an image extension and garbage content."""
    path = tmp_path / "photos" / "broken.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"definitely not a png" * 8)
    return path


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Return a temporary output directory."""
    output = tmp_path / "output"
    output.mkdir()
    return output


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user config files and env overrides out of every test."""
    monkeypatch.delenv("IMGOPT_CONFIG", raising=False)
    monkeypatch.delenv("IMGOPT_LOG_DIR", raising=False)
    monkeypatch.setattr(
        "imgopt.config.ConfigManager.DEFAULT_USER_CONFIG_DIR", tmp_path / ".imgopt"
    )
