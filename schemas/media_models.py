"""
Internal representation of one upload batch.

These objects live only for the duration of a single request; nothing here
is persisted.
"""

import re
import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

_LISTING_UNSAFE = re.compile(r"[^A-Za-z0-9_\-]")


class SessionStatus(str, Enum):
    CREATED = "created"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


@dataclass
class InputFile:
    """A caller supplied file, already read into memory."""

    name: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")


@dataclass(frozen=True)
class ProcessedAsset:
    """Transcoder output derived from exactly one InputFile."""

    data: bytes
    content_type: str
    filename: str
    transcoded: bool = False

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadSession:
    """
    Namespace and state for a single batch request.

    Fields:
        session_id: ``session-<epoch ms>-<random hex>``, unique per request.
        listing_id: Listing the batch belongs to.
        namespace: Key prefix shared by every object of the batch.
        created_at: Epoch milliseconds at creation.
        status: created -> processing -> succeeded | aborted.
        abort_reason: Message of the failure that aborted the batch.
    """

    session_id: str
    listing_id: str
    namespace: str
    created_at: int
    status: SessionStatus = SessionStatus.CREATED
    abort_reason: Optional[str] = None
    landed_keys: list[str] = field(default_factory=list)

    @classmethod
    def create(cls, listing_id: str, key_prefix: str) -> "UploadSession":
        created_at = int(time.time() * 1000)
        session_id = f"session-{created_at}-{secrets.token_hex(6)}"
        namespace = cls.namespace_for(key_prefix, listing_id, session_id)
        return cls(
            session_id=session_id,
            listing_id=listing_id,
            namespace=namespace,
            created_at=created_at,
        )

    @staticmethod
    def namespace_for(key_prefix: str, listing_id: str, session_id: str) -> str:
        parts = (key_prefix, _LISTING_UNSAFE.sub("_", listing_id), session_id)
        return "/".join(part.strip("/") for part in parts if part)

    def start(self) -> None:
        if self.status is not SessionStatus.CREATED:
            raise RuntimeError(f"Session {self.session_id} already {self.status.value}")
        self.status = SessionStatus.PROCESSING

    def succeed(self) -> None:
        if self.status is not SessionStatus.PROCESSING:
            raise RuntimeError(f"Session {self.session_id} is {self.status.value}, not processing")
        self.status = SessionStatus.SUCCEEDED

    def abort(self, reason: str) -> None:
        if self.status in (SessionStatus.SUCCEEDED, SessionStatus.ABORTED):
            return
        self.status = SessionStatus.ABORTED
        self.abort_reason = reason
