"""
Pytest configuration and shared fixtures for the media upload tests.
"""

import io
import os
import threading
from urllib.parse import unquote

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from core.config import Settings


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket, Prefix):
        contents = [
            {"Key": key, "Size": len(body)}
            for (bucket, key), body in self.client.objects.items()
            if bucket == Bucket and key.startswith(Prefix)
        ]
        yield {"Contents": contents} if contents else {}


class FakeS3Client:
    """
    In-memory stand-in for a boto3 S3 client.

    Records every put_object call; files whose original name is listed in
    ``fail_for`` raise a ClientError like a rejected request would.
    """

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.put_calls = []
        self.deleted = []
        self.objects = {}
        self._lock = threading.Lock()

    def put_object(self, **kwargs):
        original = unquote(kwargs["Metadata"].get("original-filename", ""))
        if original in self.fail_for:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "simulated failure"}},
                "PutObject",
            )
        with self._lock:
            self.put_calls.append(kwargs)
            self.objects[(kwargs["Bucket"], kwargs["Key"])] = kwargs["Body"]
        return {"ETag": '"fake"'}

    def delete_object(self, Bucket, Key):
        with self._lock:
            self.deleted.append(Key)
            self.objects.pop((Bucket, Key), None)
        return {}

    def get_paginator(self, operation_name):
        assert operation_name == "list_objects_v2"
        return FakePaginator(self)


def make_jpeg(width: int = 64, height: int = 48, pad_to: int = 0) -> bytes:
    """Create a solid JPEG, optionally padded with trailing bytes to ``pad_to``."""
    image = Image.new("RGB", (width, height), color=(200, 120, 40))
    output = io.BytesIO()
    image.save(output, format="JPEG", quality=85)
    data = output.getvalue()
    if pad_to > len(data):
        data += b"\x00" * (pad_to - len(data))
    return data


def make_png(width: int = 64, height: int = 48, mode: str = "RGBA") -> bytes:
    image = Image.new(mode, (width, height), color=(10, 20, 30, 128) if mode == "RGBA" else (10, 20, 30))
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def storage_settings():
    """Settings with every storage value present."""
    return Settings(
        R2_ENDPOINT="https://account.r2.cloudflarestorage.com",
        R2_ACCESS_KEY_ID="test-access-key",
        R2_SECRET_ACCESS_KEY="test-secret-key",
        R2_BUCKET="listing-media",
        R2_PUBLIC_BASE_URL="https://media.example.com/",
        JWT_SECRET_KEY="test-secret",
    )


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()
