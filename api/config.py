"""Extraction service — environment configuration.

Values are read on every call so tests and reloaded processes see the
current environment.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

DEFAULT_PORT = 8080


def get_port() -> int:
    raw = os.environ.get("PORT", "").strip()
    try:
        return int(raw) if raw else DEFAULT_PORT
    except ValueError:
        return DEFAULT_PORT


def get_bucket() -> Optional[str]:
    """Target Cloud Storage bucket, or None when unset or blank."""
    bucket = os.environ.get("BUCKET", "").strip()
    return bucket or None


def get_work_root() -> Path:
    """Directory under which per-request working directories are created."""
    root = os.environ.get("WORK_DIR_ROOT", "").strip()
    return Path(root) if root else Path(tempfile.gettempdir())


def get_ffmpeg_binary() -> str:
    return os.environ.get("FFMPEG_BINARY", "").strip() or "ffmpeg"


def get_ffprobe_binary() -> str:
    return os.environ.get("FFPROBE_BINARY", "").strip() or "ffprobe"
