import asyncio
import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, File, Form, UploadFile

from core.config import settings
from middleware.auth.auth_deps import uploader_dependency
from schemas.media_models import InputFile, UploadSession
from schemas.upload_schema import SessionObjectsResponse, UploadBatchResponse
from services.storage_service import get_s3_client
from services.upload_service import MediaIngestService, check_file_count, check_file_size

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/properties",
    tags=["properties", "upload"],
)


def get_ingest_service() -> MediaIngestService:
    """Builds the service from settings; raises ConfigurationError if storage is unset."""
    settings.require_storage()
    return MediaIngestService.from_settings(settings, s3_client=get_s3_client())


ingest_dependency = Annotated[MediaIngestService, Depends(get_ingest_service)]


async def read_upload(upload: UploadFile) -> InputFile:
    data = await upload.read()
    return InputFile(
        name=upload.filename or "",
        data=data,
        content_type=upload.content_type or "",
    )


# --- Endpoint 1: Upload a batch of listing media ---

@router.post("/images", response_model=UploadBatchResponse)
async def upload_images(
    user: uploader_dependency,
    service: ingest_dependency,
    files: Annotated[List[UploadFile], File()],
    listing_id: Annotated[str, Form(alias="listingId")],
):
    """
    Uploads every file of the batch to object storage, or none of them.
    Images are converted to WebP; other media is stored as submitted.
    """
    logger.info("User %s uploading %d files for listing %s", user.id, len(files), listing_id)
    # Count and declared part sizes are checked before any part is read into memory
    check_file_count(len(files), service.config)
    for upload in files:
        if upload.size is not None:
            check_file_size(upload.filename or "", upload.content_type or "", upload.size, service.config)
    batch = [await read_upload(upload) for upload in files]
    return await service.ingest(batch, listing_id)


# --- Endpoint 2: Inspect the objects stored for a session ---

@router.get("/{listing_id}/sessions/{session_id}/objects", response_model=SessionObjectsResponse)
async def list_session_objects(
    listing_id: str,
    session_id: str,
    user: uploader_dependency,
    service: ingest_dependency,
):
    """Lists stored keys under one upload session, including orphans of aborted batches."""
    prefix = f"{UploadSession.namespace_for(service.config.KEY_PREFIX, listing_id, session_id)}/"
    keys = await asyncio.to_thread(service.uploader.list_keys, prefix)
    return SessionObjectsResponse(
        listing_id=listing_id,
        session_id=session_id,
        prefix=prefix,
        keys=keys,
    )
