import logging
import time
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import Settings, settings
from core.exceptions import UploadError
from schemas.media_models import ProcessedAsset

logger = logging.getLogger(__name__)


def normalize_endpoint(raw_endpoint: str) -> str:
    """
    Clean up an R2 endpoint value.

    Accepts values pasted as ``R2_ENDPOINT=https://...`` and bare hostnames;
    always returns a URL with a scheme and no trailing slash.
    """
    endpoint = raw_endpoint.strip()
    for marker in ("R2_ENDPOINT=", "r2_endpoint="):
        if marker in endpoint:
            endpoint = endpoint.split(marker, 1)[1].strip()
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"https://{endpoint}"
    return endpoint.rstrip("/")


def normalize_public_base(raw_base: str) -> str:
    base = raw_base.strip().rstrip("/")
    if not base.startswith(("http://", "https://")):
        base = f"https://{base}"
    return base


def add_cache_buster(url: str, version: Optional[int] = None) -> str:
    """Append a ``v=`` query parameter; does not touch the object key."""
    version = version if version is not None else int(time.time() * 1000)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}v={version}"


def create_s3_client(config: Settings):
    """
    Build an S3 client for the R2 endpoint.

    boto3 clients are thread safe, so one client is shared by every pipeline.
    """
    config.require_storage()
    return boto3.client(
        "s3",
        region_name=config.R2_REGION,
        endpoint_url=normalize_endpoint(config.R2_ENDPOINT),
        aws_access_key_id=config.R2_ACCESS_KEY_ID,
        aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
        config=Config(
            s3={"addressing_style": "path"},
            retries={"max_attempts": config.R2_MAX_ATTEMPTS, "mode": "standard"},
        ),
    )


@lru_cache(maxsize=1)
def get_s3_client():
    return create_s3_client(settings)


class Uploader:
    """Writes processed assets to the bucket and builds their public URLs."""

    def __init__(self, s3_client, bucket: str, public_base_url: str, cache_control: str):
        self.s3_client = s3_client
        self.bucket = bucket.strip()
        self.public_base_url = normalize_public_base(public_base_url)
        self.cache_control = cache_control

    @classmethod
    def from_settings(cls, config: Settings, s3_client=None) -> "Uploader":
        config.require_storage()
        return cls(
            s3_client=s3_client if s3_client is not None else create_s3_client(config),
            bucket=config.R2_BUCKET,
            public_base_url=config.R2_PUBLIC_BASE_URL,
            cache_control=config.CACHE_CONTROL,
        )

    def upload(self, key: str, asset: ProcessedAsset, metadata: dict[str, str]) -> str:
        """
        Store ``asset`` under ``key`` and return its cache-busted public URL.

        put_object overwrites, so repeating the call with the same key is safe.

        :raises UploadError: On any transport or storage error. Not retried here.
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=asset.data,
                ContentType=asset.content_type,
                CacheControl=self.cache_control,
                Metadata={name: quote(str(value), safe="") for name, value in metadata.items()},
            )
        except (ClientError, BotoCoreError) as e:
            raise UploadError(
                f"Failed to upload {metadata.get('original-filename', key)}: {e}",
                file_name=metadata.get("original-filename"),
            ) from e

        logger.info("Uploaded %s (%s, %d bytes)", key, asset.content_type, asset.size)
        return add_cache_buster(self.build_public_url(key))

    def build_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def list_keys(self, prefix: str) -> list[str]:
        """
        Lists all object keys under a given prefix in the bucket.

        :raises UploadError: If listing fails.
        """
        keys = []
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []) if obj["Size"] > 0)
        except (ClientError, BotoCoreError) as e:
            raise UploadError(f"Error listing objects under {prefix}: {e}") from e
        return keys

    def delete_keys(self, keys: list[str]) -> int:
        """Best-effort delete; returns how many keys were removed."""
        deleted = 0
        for key in keys:
            try:
                self.s3_client.delete_object(Bucket=self.bucket, Key=key)
                deleted += 1
            except (ClientError, BotoCoreError) as e:
                logger.error("Failed to delete %s: %s", key, e)
        return deleted
