"""Extraction service — Pipeline orchestrator.

Runs one extraction synchronously:
  validate → work dir → download → probe → transcode → upload + sign → result

The working directory is removed on every exit path.
"""

import logging
import re
import shutil
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from config import get_work_root
from exceptions import MissingFileIdError, PublishConfigError
from models import ExtractionMeta, ExtractionRequest, ExtractionResult
from stages.transcode import ensure_supported, probe_duration, transcode

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class Fetcher(Protocol):
    def fetch(self, file_id: str, destination_path: Union[str, Path]) -> int: ...


class Publisher(Protocol):
    def publish(self, local_path: Union[str, Path], destination_key: str) -> str: ...


def _ms_since(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def destination_key(file_id: str, fmt: str) -> str:
    """Object key the audio is published under."""
    return f"audio/{file_id}.{fmt}"


def _work_dir_name(file_id: str) -> str:
    # Random suffix keeps concurrent requests for the same file apart
    safe = _UNSAFE_PATH_CHARS.sub("_", file_id)[:64]
    return f"{safe}-{uuid.uuid4().hex[:12]}"


def remove_work_directory(path: Path) -> None:
    """Delete path recursively; failures are logged, never raised."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
        logger.info("Cleaned up work dir: %s", path)
    except OSError:
        logger.warning("Failed to clean up %s", path, exc_info=True)


@contextmanager
def work_directory(file_id: str, root: Optional[Path] = None) -> Iterator[Path]:
    """Create a request-scoped working directory and always remove it."""
    path = (root or get_work_root()) / _work_dir_name(file_id)
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        remove_work_directory(path)


def run_pipeline(
    request: ExtractionRequest,
    *,
    bucket: Optional[str],
    fetcher: Fetcher,
    publisher: Publisher,
    work_root: Optional[Path] = None,
) -> ExtractionResult:
    """Run the full extraction for one request.

    Args:
        request: Validated request body (numeric fallbacks already applied).
        bucket: Target bucket, reported in the result metadata.
        fetcher: Downloads the source video.
        publisher: Uploads the audio and signs a read URL.
        work_root: Parent for the working directory (defaults to WORK_DIR_ROOT).

    Raises:
        MissingFileIdError: No fileId; nothing is created.
        PublishConfigError: No bucket; nothing is fetched.
        UnsupportedFormatError: Unknown format; nothing is fetched or spawned.
        ExtractionError: Any stage failure.
    """
    started = time.monotonic()

    file_id = request.file_id
    if not file_id:
        raise MissingFileIdError()
    if not bucket:
        raise PublishConfigError()
    fmt = request.format
    ensure_supported(fmt)

    with work_directory(file_id, work_root) as work_dir:
        input_path = work_dir / "input.mp4"
        audio_path = work_dir / f"audio.{fmt}"

        logger.info("Stage 1: Downloading %s", file_id)
        stage_started = time.monotonic()
        fetcher.fetch(file_id, input_path)
        logger.info("Download took %dms", _ms_since(stage_started))

        duration = probe_duration(input_path)
        if duration is None:
            logger.info("Duration unavailable for %s", file_id)
        else:
            logger.info("Source duration: %.2fs", duration)

        logger.info(
            "Stage 2: Transcoding to %s (%d Hz, %d ch, %dk)",
            fmt,
            request.sample_rate,
            request.channels,
            request.bitrate_k,
        )
        stage_started = time.monotonic()
        transcode(input_path, audio_path, request)
        logger.info("Transcode took %dms", _ms_since(stage_started))

        input_bytes = input_path.stat().st_size
        audio_bytes = audio_path.stat().st_size
        logger.info("Audio is %d bytes (source %d bytes)", audio_bytes, input_bytes)

        destination = destination_key(file_id, fmt)
        logger.info("Stage 3: Publishing to gs://%s/%s", bucket, destination)
        stage_started = time.monotonic()
        audio_url = publisher.publish(audio_path, destination)
        logger.info("Publish took %dms", _ms_since(stage_started))

    elapsed_ms = _ms_since(started)
    logger.info("Extraction of %s finished in %dms", file_id, elapsed_ms)

    return ExtractionResult(
        file_id=file_id,
        audio_url=audio_url,
        meta=ExtractionMeta(
            format=fmt,
            input_bytes=input_bytes,
            audio_bytes=audio_bytes,
            duration_sec=duration,
            elapsed_ms=elapsed_ms,
            bucket=bucket,
            destination=destination,
        ),
    )
