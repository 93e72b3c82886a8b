"""Tests for the Cloud Storage publish stage."""

import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from google.auth.credentials import Signing

from exceptions import PublishConfigError, SignError, UploadError
from stages.publish import StoragePublisher, _signing_kwargs


@pytest.fixture
def client():
    client = MagicMock()
    client._credentials = None
    blob = client.bucket.return_value.blob.return_value
    blob.generate_signed_url.return_value = "https://storage.googleapis.com/my-bucket/audio/abc.ogg?X-Goog-Signature=sig"
    return client


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "audio.ogg"
    path.write_bytes(b"OggS" + b"\x00" * 32)
    return path


class TestStoragePublisher:
    def test_uploads_and_signs(self, client, audio_file):
        url = StoragePublisher("my-bucket", client).publish(audio_file, "audio/abc.ogg")

        assert url.startswith("https://storage.googleapis.com/my-bucket/audio/abc.ogg")
        client.bucket.assert_called_with("my-bucket")
        client.bucket.return_value.blob.assert_called_with("audio/abc.ogg")

        blob = client.bucket.return_value.blob.return_value
        blob.upload_from_filename.assert_called_once_with(
            str(audio_file), content_type="audio/ogg", checksum=None, retry=None
        )
        kwargs = blob.generate_signed_url.call_args.kwargs
        assert kwargs["expiration"] == timedelta(hours=1)
        assert kwargs["method"] == "GET"
        assert kwargs["version"] == "v4"

    @pytest.mark.parametrize("bucket", [None, ""])
    def test_missing_bucket_fails_before_io(self, client, audio_file, bucket):
        with pytest.raises(PublishConfigError):
            StoragePublisher(bucket, client).publish(audio_file, "audio/abc.ogg")
        client.bucket.assert_not_called()

    def test_upload_failure(self, client, audio_file):
        blob = client.bucket.return_value.blob.return_value
        blob.upload_from_filename.side_effect = RuntimeError("403 Forbidden")
        with pytest.raises(UploadError, match="403 Forbidden"):
            StoragePublisher("my-bucket", client).publish(audio_file, "audio/abc.ogg")
        blob.generate_signed_url.assert_not_called()

    def test_sign_failure(self, client, audio_file):
        blob = client.bucket.return_value.blob.return_value
        blob.generate_signed_url.side_effect = AttributeError("you need a private key to sign credentials")
        with pytest.raises(SignError, match="private key"):
            StoragePublisher("my-bucket", client).publish(audio_file, "audio/abc.ogg")


class TestSigningKwargs:
    def test_signing_credentials_need_nothing(self):
        assert _signing_kwargs(MagicMock(spec=Signing)) == {}

    def test_no_credentials(self):
        assert _signing_kwargs(None) == {}

    def test_token_credentials_delegate_to_iam(self):
        credentials = MagicMock(spec=["valid", "refresh", "service_account_email", "token"])
        credentials.valid = False
        credentials.service_account_email = "svc@project.iam.gserviceaccount.com"
        credentials.token = "ya29.token"

        kwargs = _signing_kwargs(credentials)

        credentials.refresh.assert_called_once()
        assert kwargs == {
            "service_account_email": "svc@project.iam.gserviceaccount.com",
            "access_token": "ya29.token",
        }
