"""
Object key generation for uploaded media.

Key layout::

    <prefix>/<listing id>/<session id>/<ordinal>-<random hex>-<sanitized name>

The session part groups every object of one batch; the ordinal and a 128 bit
token from ``secrets`` keep keys distinct for identical names uploaded in the
same instant.
"""

import re
import secrets
from typing import Callable, Optional

from schemas.media_models import UploadSession

MAX_KEY_LENGTH = 1024
MAX_NAME_LENGTH = 120
TOKEN_BYTES = 16

_UNSAFE_CHARS = re.compile(r"[^\w.\-]")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9/\-_.]+$")
_KEY_NAME_PATTERN = re.compile(r"^(?P<ordinal>\d+)-(?P<token>[0-9a-f]+)-(?P<filename>.+)$")


def sanitize_filename(filename: str) -> str:
    """Reduce a filename to ``[a-z0-9_.-]``, never returning an empty string."""
    cleaned = _UNSAFE_CHARS.sub("_", filename.encode("ascii", "ignore").decode())
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned).strip("_").lower()
    if len(cleaned) > MAX_NAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and len(ext) < 10:
            cleaned = stem[: MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:MAX_NAME_LENGTH]
    return cleaned or "file"


def validate_key(key: str) -> bool:
    return 0 < len(key) < MAX_KEY_LENGTH and bool(_KEY_PATTERN.match(key))


def parse_key(key: str) -> Optional[dict]:
    """
    Split a generated key back into its parts.

    Returns None for keys that were not produced by KeyGenerator.
    """
    namespace, _, name = key.rpartition("/")
    if not namespace:
        return None
    match = _KEY_NAME_PATTERN.match(name)
    if not match:
        return None
    return {
        "namespace": namespace,
        "ordinal": int(match.group("ordinal")),
        "token": match.group("token"),
        "filename": match.group("filename"),
    }


class KeyGenerator:
    """Issues collision resistant object keys within an UploadSession."""

    def __init__(self, token_factory: Callable[[int], str] = secrets.token_hex):
        self._token_factory = token_factory

    def generate(self, session: UploadSession, ordinal: int, filename: str) -> str:
        token = self._token_factory(TOKEN_BYTES)
        key = f"{session.namespace}/{ordinal:03d}-{token}-{sanitize_filename(filename)}"
        if not validate_key(key):
            raise ValueError(f"Generated an invalid object key for {filename!r}: {key!r}")
        return key
