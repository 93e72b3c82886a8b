"""Extraction service — error taxonomy.

Every failure the pipeline reports inherits from ExtractionError and
carries the HTTP status the endpoint answers with.
"""


class ExtractionError(Exception):
    """Base exception for all extraction pipeline errors."""

    status_code: int = 500


class ClientInputError(ExtractionError):
    """The request itself is unusable."""

    status_code = 400


class MissingFileIdError(ClientInputError):
    def __init__(self):
        super().__init__("Missing fileId")


class ConfigurationError(ExtractionError):
    """The deployment is missing required configuration."""

    status_code = 500


class PublishConfigError(ConfigurationError):
    def __init__(self):
        super().__init__("Missing BUCKET env var")


class UpstreamFetchError(ExtractionError):
    """Raised when the source file cannot be downloaded."""

    def __init__(self, file_id: str, cause: Exception | None = None):
        self.file_id = file_id
        self.cause = cause
        message = f"Failed to download file '{file_id}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class UnsupportedFormatError(ExtractionError):
    """Raised for an output format the transcoder has no recipe for."""

    def __init__(self, fmt: str, allowed: tuple[str, ...] = ("ogg", "mp3", "wav")):
        self.format = fmt
        super().__init__(f"Unsupported format '{fmt}'. Allowed: {', '.join(allowed)}")


class TranscodeError(ExtractionError):
    """Raised when ffmpeg cannot be started or exits with an error."""


class UploadError(ExtractionError):
    """Raised when the audio file cannot be uploaded to the bucket."""

    def __init__(self, destination: str, cause: Exception | None = None):
        self.destination = destination
        self.cause = cause
        message = f"Failed to upload '{destination}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class SignError(ExtractionError):
    """Raised when a signed read URL cannot be issued."""

    def __init__(self, destination: str, cause: Exception | None = None):
        self.destination = destination
        self.cause = cause
        message = f"Failed to sign URL for '{destination}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
