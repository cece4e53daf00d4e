"""
Batch upload orchestration.

Each file runs through its own pipeline (transcode -> key -> upload) as a task
in an asyncio.TaskGroup. The first failing pipeline cancels the others and the
caller receives that one error; a batch never returns a partial result list.
"""

import asyncio
import logging
import time
from typing import List, Optional

from core.config import Settings
from core.exceptions import MediaIngestError, UploadError, ValidationError
from helper.keys import KeyGenerator
from helper.transcode import Transcoder
from schemas.media_models import InputFile, UploadSession
from schemas.upload_schema import UploadBatchResponse, UploadResult
from services.storage_service import Uploader
from services.verification_service import verify_batch

logger = logging.getLogger(__name__)


def size_limit_for(content_type: str, config: Settings) -> int:
    return config.MAX_VIDEO_SIZE_BYTES if content_type.startswith("video/") else config.MAX_IMAGE_SIZE_BYTES


def check_file_count(count: int, config: Settings) -> None:
    if count > config.MAX_FILES_PER_BATCH:
        raise ValidationError(
            f"Too many files: {count} submitted, maximum is {config.MAX_FILES_PER_BATCH}"
        )


def check_file_size(name: str, content_type: str, size: int, config: Settings) -> None:
    limit = size_limit_for(content_type, config)
    if size > limit:
        raise ValidationError(
            f"File {name} is too large ({size} bytes, max {limit // (1024 * 1024)}MB)",
            file_name=name,
        )


def validate_batch(files: List[InputFile], config: Settings) -> None:
    """
    Admission checks run before any pipeline starts.

    :raises ValidationError: Naming the first offending file.
    """
    if not files:
        raise ValidationError("No files provided")
    check_file_count(len(files), config)

    for file in files:
        if not file.name:
            raise ValidationError("Every file must have a name")
        if not file.content_type.startswith(tuple(config.ALLOWED_MEDIA_PREFIXES)):
            raise ValidationError(
                f"Unsupported file type for {file.name}: {file.content_type or 'unknown'}. "
                "Only images and videos are allowed.",
                file_name=file.name,
            )
        if file.size == 0:
            raise ValidationError(f"File {file.name} is empty", file_name=file.name)
        check_file_size(file.name, file.content_type, file.size, config)


class MediaIngestService:
    def __init__(
        self,
        uploader: Uploader,
        config: Settings,
        transcoder: Optional[Transcoder] = None,
        key_generator: Optional[KeyGenerator] = None,
    ):
        self.uploader = uploader
        self.config = config
        self.transcoder = transcoder or Transcoder(
            max_width=config.TRANSCODE_MAX_WIDTH,
            max_height=config.TRANSCODE_MAX_HEIGHT,
            quality=config.TRANSCODE_QUALITY,
        )
        self.key_generator = key_generator or KeyGenerator()

    @classmethod
    def from_settings(cls, config: Settings, s3_client=None) -> "MediaIngestService":
        return cls(uploader=Uploader.from_settings(config, s3_client), config=config)

    async def ingest(self, files: List[InputFile], listing_id: str) -> UploadBatchResponse:
        """
        Upload a whole batch or nothing.

        :raises ConfigurationError: Storage settings missing; nothing is uploaded.
        :raises ValidationError: Admission failed; nothing is uploaded.
        :raises UploadError: A pipeline failed; the batch is aborted.
        :raises IntegrityError: Verification found duplicate keys or URLs.
        """
        self.config.require_storage()
        if not listing_id or not listing_id.strip():
            raise ValidationError("A listing id is required")
        validate_batch(files, self.config)

        session = UploadSession.create(listing_id.strip(), self.config.KEY_PREFIX)
        session.start()
        logger.info(
            "Session %s: uploading %d files for listing %s",
            session.session_id, len(files), session.listing_id,
        )

        try:
            results = await self._run_pipelines(session, files)
            summary = verify_batch(results)
        except MediaIngestError as e:
            session.abort(str(e))
            logger.error("Session %s aborted: %s", session.session_id, e)
            await self._discard_landed(session)
            raise
        except asyncio.CancelledError:
            # Objects that already landed stay in the bucket as unreferenced orphans
            session.abort("cancelled")
            logger.warning("Session %s cancelled by caller", session.session_id)
            raise

        session.succeed()
        logger.info(
            "Session %s: %d files, %d bytes uploaded",
            session.session_id, summary.total_files, summary.total_bytes,
        )
        return UploadBatchResponse(
            session_id=session.session_id,
            listing_id=session.listing_id,
            files=results,
            summary=summary,
            message=f"Successfully uploaded {summary.total_files} file(s)",
        )

    async def _run_pipelines(self, session: UploadSession, files: List[InputFile]) -> List[UploadResult]:
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(self._run_pipeline(session, file, ordinal))
                    for ordinal, file in enumerate(files)
                ]
        except ExceptionGroup as eg:
            failures = [e for e in eg.exceptions if isinstance(e, MediaIngestError)]
            if not failures:
                raise
            raise failures[0] from None
        # Task order is submission order, not completion order
        return [task.result() for task in tasks]

    async def _run_pipeline(self, session: UploadSession, file: InputFile, ordinal: int) -> UploadResult:
        try:
            asset = await asyncio.to_thread(
                self.transcoder.transcode, file.data, file.content_type, file.name
            )
            key = self.key_generator.generate(session, ordinal, asset.filename)
            metadata = {
                "original-filename": file.name,
                "file-index": str(ordinal),
                "session-id": session.session_id,
                "upload-timestamp": str(int(time.time() * 1000)),
            }
            url = await asyncio.to_thread(self.uploader.upload, key, asset, metadata)
        except MediaIngestError:
            raise
        except Exception as e:
            raise UploadError(f"Failed to process {file.name}: {e}", file_name=file.name) from e

        session.landed_keys.append(key)
        return UploadResult(
            key=key,
            url=url,
            original_name=file.name,
            size=asset.size,
            content_type=asset.content_type,
            ordinal=ordinal,
            transcoded=asset.transcoded,
        )

    async def _discard_landed(self, session: UploadSession) -> None:
        if not (self.config.DELETE_ON_ABORT and session.landed_keys):
            return
        deleted = await asyncio.to_thread(self.uploader.delete_keys, list(session.landed_keys))
        logger.info(
            "Session %s: removed %d of %d uploaded objects after abort",
            session.session_id, deleted, len(session.landed_keys),
        )
