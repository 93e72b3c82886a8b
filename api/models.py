"""Extraction service — Pydantic data models."""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_FORMAT = "ogg"
DEFAULT_SAMPLE_RATE = 16000
DEFAULT_CHANNELS = 1
DEFAULT_BITRATE_K = 32


def _positive_int(value: Any, default: int) -> int:
    """Coerce value to a positive int, falling back to default instead of failing."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    number = int(number)
    return number if number > 0 else default


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractionRequest(_CamelModel):
    """Body of POST /extract-audio.

    Numeric options never fail validation: anything unusable is replaced
    by its default. A missing or blank fileId is kept as None and rejected
    by the pipeline with a 400.
    """

    file_id: Optional[str] = Field(default=None, description="Google Drive file identifier")
    format: str = Field(default=DEFAULT_FORMAT, description="Output container: ogg, mp3 or wav")
    sample_rate: int = Field(default=DEFAULT_SAMPLE_RATE, description="Output sample rate in Hz")
    channels: int = Field(default=DEFAULT_CHANNELS, description="Output channel count")
    bitrate_k: int = Field(default=DEFAULT_BITRATE_K, description="Output bitrate in kbps (ignored for wav)")

    @field_validator("file_id", mode="before")
    @classmethod
    def _blank_file_id_is_missing(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_FORMAT
        normalized = str(value).strip().lower()
        return normalized or DEFAULT_FORMAT

    @field_validator("sample_rate", mode="before")
    @classmethod
    def _sample_rate_or_default(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_SAMPLE_RATE)

    @field_validator("channels", mode="before")
    @classmethod
    def _channels_or_default(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_CHANNELS)

    @field_validator("bitrate_k", mode="before")
    @classmethod
    def _bitrate_or_default(cls, value: Any) -> int:
        return _positive_int(value, DEFAULT_BITRATE_K)


class ExtractionMeta(_CamelModel):
    """Diagnostic metadata about one extraction."""

    format: str
    input_bytes: int = Field(description="Size of the downloaded video")
    audio_bytes: int = Field(description="Size of the extracted audio")
    duration_sec: Optional[float] = Field(default=None, description="Probed source duration, null if unknown")
    elapsed_ms: int = Field(description="Wall time spent in the pipeline")
    bucket: str
    destination: str = Field(description="Object key inside the bucket")


class ExtractionResult(_CamelModel):
    """Response from POST /extract-audio."""

    file_id: str
    audio_url: str = Field(description="Signed read URL, valid for one hour")
    meta: ExtractionMeta


class ErrorResponse(BaseModel):
    error: str
