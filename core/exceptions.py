"""
Media ingestion exceptions.

Every failure the upload pipeline can surface derives from MediaIngestError,
so the HTTP layer maps the whole family with a single handler. Lower level
errors (botocore, Pillow) are wrapped with ``raise ... from e`` to keep the
original chain.

    try:
        client.put_object(...)
    except ClientError as e:
        raise UploadError("Failed to upload photo.jpg", file_name="photo.jpg") from e
"""

from typing import Optional


class MediaIngestError(Exception):
    """Base exception for media ingestion failures."""

    status_code: int = 500
    code: str = "media_ingest_error"

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.file_name = file_name

    def __str__(self) -> str:
        return self.message


class ValidationError(MediaIngestError):
    """Bad, missing, empty or oversized file; raised before any pipeline starts."""

    status_code = 400
    code = "validation_error"


class ConfigurationError(MediaIngestError):
    """Required storage configuration is absent."""

    status_code = 500
    code = "configuration_error"


class TranscodeFailure(MediaIngestError):
    """Image normalization failed. Absorbed by the transcoder's fallback path."""

    code = "transcode_failure"


class UploadError(MediaIngestError):
    """Transport or storage failure for one file; aborts the whole batch."""

    status_code = 502
    code = "upload_error"


class IntegrityError(MediaIngestError):
    """Duplicate keys or URLs detected in a batch where every upload succeeded."""

    status_code = 500
    code = "integrity_error"
