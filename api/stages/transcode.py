"""Stage 2 — Convert the downloaded video to compressed audio using ffmpeg."""

import json
import logging
import math
import subprocess
from pathlib import Path
from typing import Optional, Union

from config import get_ffmpeg_binary, get_ffprobe_binary
from exceptions import TranscodeError, UnsupportedFormatError
from models import ExtractionRequest

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Codec arguments per output format; bitrate is appended for lossy codecs
CODECS: dict[str, list[str]] = {
    "ogg": ["-c:a", "libopus"],
    "mp3": ["-c:a", "libmp3lame"],
    "wav": ["-c:a", "pcm_s16le"],
}
LOSSY_FORMATS = {"ogg", "mp3"}
SUPPORTED_FORMATS: tuple[str, ...] = tuple(CODECS)

CONTENT_TYPES: dict[str, str] = {
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
}


def ensure_supported(fmt: str) -> None:
    if fmt not in CODECS:
        raise UnsupportedFormatError(fmt, SUPPORTED_FORMATS)


def build_command(input_path: PathLike, output_path: PathLike, options: ExtractionRequest) -> list[str]:
    """Build the ffmpeg argument vector for the requested output.

    Raises:
        UnsupportedFormatError: If options.format has no codec mapping.
    """
    ensure_supported(options.format)

    cmd = [
        get_ffmpeg_binary(),
        "-y",                # overwrite
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(input_path),
        "-vn",               # drop video
        "-ac", str(options.channels),
        "-ar", str(options.sample_rate),
        *CODECS[options.format],
    ]
    if options.format in LOSSY_FORMATS:
        cmd += ["-b:a", f"{options.bitrate_k}k"]
    cmd.append(str(output_path))
    return cmd


def transcode(input_path: PathLike, output_path: PathLike, options: ExtractionRequest) -> None:
    """Extract the audio track of input_path into output_path.

    The tool's own output is captured and only surfaced inside a
    TranscodeError.

    Raises:
        UnsupportedFormatError: Before any process is started.
        TranscodeError: If ffmpeg cannot be started, fails, or writes nothing.
    """
    cmd = build_command(input_path, output_path, options)
    logger.info("Running %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise TranscodeError(f"Could not start {cmd[0]}: {e}") from e

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise TranscodeError(f"ffmpeg exited with code {result.returncode}: {stderr[-500:]}")

    if not Path(output_path).exists():
        raise TranscodeError("ffmpeg produced no output file")


def _as_duration(value) -> Optional[float]:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(duration) or duration < 0:
        return None
    return duration


def probe_duration(input_path: PathLike) -> Optional[float]:
    """Best-effort media duration in seconds via ffprobe.

    Returns None instead of raising when ffprobe is missing, fails, or
    reports no usable duration.
    """
    cmd = [
        get_ffprobe_binary(),
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        logger.warning("ffprobe could not start: %s", e)
        return None

    if result.returncode != 0:
        logger.warning("ffprobe failed: %s", (result.stderr or "").strip()[:300])
        return None

    try:
        info = json.loads(result.stdout)
    except (json.JSONDecodeError, TypeError):
        logger.warning("ffprobe returned non-JSON output")
        return None
    if not isinstance(info, dict):
        return None

    fmt = info.get("format")
    if isinstance(fmt, dict):
        duration = _as_duration(fmt.get("duration"))
        if duration is not None:
            return duration

    # Some containers only report duration per stream
    streams = info.get("streams")
    if isinstance(streams, list):
        durations = [
            d for d in (_as_duration(s.get("duration")) for s in streams if isinstance(s, dict))
            if d is not None
        ]
        if durations:
            return max(durations)

    return None


def check_ffmpeg() -> bool:
    """Return True if the ffmpeg binary can be executed."""
    try:
        subprocess.run([get_ffmpeg_binary(), "-version"], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, OSError):
        return False
