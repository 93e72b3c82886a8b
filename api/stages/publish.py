"""Stage 3 — Upload the audio to Cloud Storage and issue a signed read URL."""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

import google.auth.transport.requests
from google.auth.credentials import Signing
from google.cloud import storage

from exceptions import PublishConfigError, SignError, UploadError
from stages.transcode import CONTENT_TYPES

logger = logging.getLogger(__name__)

SIGNED_URL_TTL = timedelta(hours=1)


@lru_cache(maxsize=1)
def get_storage_client() -> storage.Client:
    """Process-wide Cloud Storage client using Application Default Credentials."""
    logger.info("Initialized Cloud Storage client")
    return storage.Client()


def _signing_kwargs(credentials) -> dict:
    """Extra generate_signed_url arguments for credentials without a private key.

    Metadata-server credentials (Cloud Run, GCE) cannot sign locally, so the
    signature is delegated to IAM using the service account email and token.
    """
    if credentials is None or isinstance(credentials, Signing):
        return {}
    if not credentials.valid:
        credentials.refresh(google.auth.transport.requests.Request())
    return {
        "service_account_email": credentials.service_account_email,
        "access_token": credentials.token,
    }


class StoragePublisher:
    """Publishes local files to one bucket."""

    def __init__(self, bucket: Optional[str], client: Optional[storage.Client] = None):
        self.bucket = bucket
        self._client = client

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = get_storage_client()
        return self._client

    def publish(self, local_path: Union[str, Path], destination_key: str) -> str:
        """Upload local_path as destination_key and return a one-hour signed URL.

        Raises:
            PublishConfigError: If no bucket is configured (checked before any I/O).
            UploadError: If the upload fails.
            SignError: If the signed URL cannot be generated.
        """
        if not self.bucket:
            raise PublishConfigError()

        content_type = CONTENT_TYPES.get(Path(local_path).suffix.lstrip(".").lower())

        try:
            blob = self.client.bucket(self.bucket).blob(destination_key)
            # Single attempt, no checksum
            blob.upload_from_filename(str(local_path), content_type=content_type, checksum=None, retry=None)
        except Exception as e:
            logger.error("Upload of %s to gs://%s failed: %s", destination_key, self.bucket, e)
            raise UploadError(destination_key, e) from e

        logger.info("Uploaded gs://%s/%s", self.bucket, destination_key)

        try:
            url = blob.generate_signed_url(
                version="v4",
                expiration=SIGNED_URL_TTL,
                method="GET",
                **_signing_kwargs(getattr(self.client, "_credentials", None)),
            )
        except Exception as e:
            logger.error("Signing gs://%s/%s failed: %s", self.bucket, destination_key, e)
            raise SignError(destination_key, e) from e

        return url
