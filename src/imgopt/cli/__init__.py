"""CLI package for imgopt.

Usage:
    from imgopt.cli import app
"""

from __future__ import annotations

from imgopt.cli.main import app

__all__ = ["app"]
