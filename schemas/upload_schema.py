from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadResult(CamelModel):
    key: str
    url: str
    original_name: str
    size: int
    content_type: str
    ordinal: int
    transcoded: bool = False


class BatchSummary(CamelModel):
    total_files: int
    total_bytes: int
    distinct_url_count: int
    all_unique: bool


class UploadBatchResponse(CamelModel):
    success: bool = True
    session_id: str
    listing_id: str
    files: List[UploadResult]
    summary: BatchSummary
    message: str


class SessionObjectsResponse(CamelModel):
    listing_id: str
    session_id: str
    prefix: str
    keys: List[str]
