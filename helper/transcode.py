import io
import logging
import mimetypes
import os

from PIL import Image, ImageOps

from core.exceptions import TranscodeFailure
from helper.keys import sanitize_filename
from schemas.media_models import ProcessedAsset

logger = logging.getLogger(__name__)

CANONICAL_CONTENT_TYPE = "image/webp"
CANONICAL_FORMAT = "WEBP"
CANONICAL_EXTENSION = ".webp"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Extensions for the common listing media types; anything else falls back to mimetypes
KNOWN_EXTENSIONS = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
    "image/heic": (".heic",),
    "image/svg+xml": (".svg",),
    "video/mp4": (".mp4",),
    "video/quicktime": (".mov",),
    "video/webm": (".webm",),
}


def filename_for(original_name: str, content_type: str) -> str:
    """
    Build a sanitized filename whose extension matches ``content_type``.

    Keeps the original extension when it already maps to the type, otherwise
    swaps in the extension guessed for the type.
    """
    stem, ext = os.path.splitext(sanitize_filename(original_name))
    if content_type == CANONICAL_CONTENT_TYPE:
        return f"{stem}{CANONICAL_EXTENSION}"
    known = KNOWN_EXTENSIONS.get(content_type)
    if known:
        return f"{stem}{ext}" if ext in known else f"{stem}{known[0]}"
    if ext and mimetypes.guess_type(f"x{ext}")[0] == content_type:
        return f"{stem}{ext}"
    guessed = mimetypes.guess_extension(content_type) if content_type else None
    if guessed:
        return f"{stem}{guessed}"
    return f"{stem}{ext}"


class Transcoder:
    """
    Normalizes images to WebP inside a bounding box.

    Anything that cannot be decoded or re-encoded is passed through with its
    declared content type. Non-image payloads are never touched.
    """

    def __init__(self, max_width: int = 1920, max_height: int = 1080, quality: int = 85):
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality

    def transcode(self, data: bytes, content_type: str, filename: str) -> ProcessedAsset:
        content_type = content_type or DEFAULT_CONTENT_TYPE
        if not content_type.startswith("image/"):
            return self._passthrough(data, content_type, filename)

        try:
            webp_bytes = self.to_webp(data)
        except TranscodeFailure as e:
            logger.warning(
                "WebP conversion failed for %s (%s, %d bytes), using original: %s",
                filename, content_type, len(data), e,
            )
            return self._passthrough(data, content_type, filename)

        logger.info(
            "Converted %s to WebP: %d -> %d bytes", filename, len(data), len(webp_bytes)
        )
        return ProcessedAsset(
            data=webp_bytes,
            content_type=CANONICAL_CONTENT_TYPE,
            filename=filename_for(filename, CANONICAL_CONTENT_TYPE),
            transcoded=True,
        )

    def to_webp(self, data: bytes) -> bytes:
        """
        Re-encode image bytes as WebP, fitted inside max_width x max_height.

        :raises TranscodeFailure: If decoding, encoding or output validation fails.
        """
        try:
            with Image.open(io.BytesIO(data)) as source:
                image = ImageOps.exif_transpose(source)
                if image.mode not in ("RGB", "RGBA"):
                    has_alpha = "A" in image.getbands() or "transparency" in image.info
                    image = image.convert("RGBA" if has_alpha else "RGB")

                # thumbnail() keeps the aspect ratio and never upscales
                image.thumbnail((self.max_width, self.max_height), Image.Resampling.LANCZOS)

                output = io.BytesIO()
                image.save(output, format=CANONICAL_FORMAT, quality=self.quality)
            webp_bytes = output.getvalue()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise TranscodeFailure(f"Could not encode image: {e}") from e

        self._validate_output(webp_bytes)
        return webp_bytes

    def _validate_output(self, webp_bytes: bytes) -> None:
        if not webp_bytes:
            raise TranscodeFailure("Encoder produced no output")
        try:
            with Image.open(io.BytesIO(webp_bytes)) as check:
                check.verify()
                if check.format != CANONICAL_FORMAT:
                    raise TranscodeFailure(f"Encoder produced {check.format}, expected WebP")
        except (OSError, SyntaxError) as e:
            raise TranscodeFailure(f"Encoded output is unreadable: {e}") from e

    @staticmethod
    def _passthrough(data: bytes, content_type: str, filename: str) -> ProcessedAsset:
        return ProcessedAsset(
            data=data,
            content_type=content_type,
            filename=filename_for(filename, content_type),
            transcoded=False,
        )
