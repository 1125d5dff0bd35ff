"""Centralized constants for imgopt.

Grouping defaults here keeps the config models, the converter and the
CLI in agreement about limits and file names.
"""

from __future__ import annotations

import os

# =============================================================================
# Formats
# =============================================================================

# Source extensions live in formats.EXTENSION_MAP
DEFAULT_TARGET_FORMAT = "jpg"

# =============================================================================
# Image Processing
# =============================================================================

DEFAULT_MAX_DIMENSION = 1440  # Long side bound for downscaling
DEFAULT_JPEG_QUALITY = 80
DEFAULT_WEBP_QUALITY = 80
DEFAULT_PNG_COMPRESS_LEVEL = 9  # Best compression
MIN_QUALITY = 1
MAX_QUALITY = 100

# =============================================================================
# Batch Processing
# =============================================================================

DEFAULT_WORKERS = os.cpu_count() or 1
DEFAULT_FILE_TIMEOUT: float | None = None  # No per-file timeout

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR: str | None = None  # File logging disabled by default
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Paths and Filenames
# =============================================================================

CONFIG_FILENAME = "imgopt.json"
DEFAULT_USER_CONFIG_DIR = "~/.imgopt"
DEFAULT_ERRORS_DIR = "errors"
