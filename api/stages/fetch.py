"""Stage 1 — Download the source video from Google Drive."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional, Union

import google.auth
import google_auth_httplib2
import httplib2
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

from exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
CHUNK_SIZE = 8 * 1024 * 1024


@lru_cache(maxsize=1)
def get_drive_credentials():
    """Process-wide Application Default Credentials scoped to read-only Drive."""
    credentials, _ = google.auth.default(scopes=[DRIVE_READONLY_SCOPE])
    return credentials


@lru_cache(maxsize=1)
def get_drive_service():
    """Process-wide Drive v3 resource; requests get their own transport in DriveFetcher."""
    logger.info("Initialized Google Drive client")
    return build("drive", "v3", credentials=get_drive_credentials(), cache_discovery=False)


def authorized_http() -> google_auth_httplib2.AuthorizedHttp:
    """A fresh authorized transport. httplib2.Http is not thread-safe, so one per download."""
    return google_auth_httplib2.AuthorizedHttp(get_drive_credentials(), http=httplib2.Http())


class DriveFetcher:
    """Streams Drive files to local disk."""

    def __init__(self, service=None, http_factory: Optional[Callable[[], object]] = None):
        self._service = service
        self._http_factory = http_factory or authorized_http

    @property
    def service(self):
        if self._service is None:
            self._service = get_drive_service()
        return self._service

    def fetch(self, file_id: str, destination_path: Union[str, Path]) -> int:
        """Download file_id into destination_path.

        Returns:
            Number of bytes written.

        Raises:
            UpstreamFetchError: On credential, HTTP, network or disk failure.
        """
        try:
            request = self.service.files().get_media(fileId=file_id, supportsAllDrives=True)
            request.http = self._http_factory()
            with open(destination_path, "wb") as fh:
                downloader = MediaIoBaseDownload(fh, request, chunksize=CHUNK_SIZE)
                done = False
                while not done:
                    status, done = downloader.next_chunk()
                    if status is not None:
                        logger.debug("Download %s: %d%%", file_id, int(status.progress() * 100))
        except Exception as e:
            logger.error("Drive download failed for %s: %s", file_id, e)
            raise UpstreamFetchError(file_id, e) from e

        size = Path(destination_path).stat().st_size
        logger.info("Downloaded %s (%d bytes)", file_id, size)
        return size
