import logging
from typing import List

from core.exceptions import IntegrityError
from schemas.upload_schema import BatchSummary, UploadResult

logger = logging.getLogger(__name__)


def verify_batch(results: List[UploadResult]) -> BatchSummary:
    """
    Reject a finished batch whose keys or URLs are not pairwise distinct.

    Runs after every upload succeeded; a duplicate here means the key
    generator misbehaved, so the batch is refused as a whole.

    :raises IntegrityError: If any key or URL repeats.
    """
    distinct_keys = {r.key for r in results}
    distinct_urls = {r.url for r in results}

    if len(distinct_keys) < len(results) or len(distinct_urls) < len(results):
        logger.error(
            "Duplicate keys or URLs detected: %d results, %d keys, %d urls",
            len(results), len(distinct_keys), len(distinct_urls),
        )
        raise IntegrityError(
            "Duplicate URLs generated - this indicates a key collision issue"
        )

    return BatchSummary(
        total_files=len(results),
        total_bytes=sum(r.size for r in results),
        distinct_url_count=len(distinct_urls),
        all_unique=True,
    )
