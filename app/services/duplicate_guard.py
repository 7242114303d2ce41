import enum
import logging
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError

from app.services.photo_repository import PhotoRepository

logger = logging.getLogger(__name__)


class DuplicateCheck(enum.Enum):
    DUPLICATE = "duplicate"
    NOT_DUPLICATE = "not_duplicate"
    LOOKUP_FAILED = "lookup_failed"


async def check_duplicate(
    content_hash: str,
    staged: Iterable,
    profile_id: str | None,
    photos: PhotoRepository | None,
) -> DuplicateCheck:
    """Look for ``content_hash`` among the staged photos, then among persisted ones.

    The local list is checked first so picking the same image twice never
    costs a round trip. A failed remote lookup is reported as
    ``LOOKUP_FAILED``; the caller decides whether to go ahead anyway.
    """
    if any(p.content_hash == content_hash for p in staged):
        logger.info("Duplicate photo %s... found in staged list", content_hash[:16])
        return DuplicateCheck.DUPLICATE

    if not profile_id or photos is None:
        return DuplicateCheck.NOT_DUPLICATE

    try:
        existing = await photos.find_by_hash(profile_id, content_hash)
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Duplicate lookup failed for profile %s: %s", profile_id, e)
        return DuplicateCheck.LOOKUP_FAILED

    if existing is not None:
        logger.info("Duplicate photo %s... already stored as %s", content_hash[:16], existing.id)
        return DuplicateCheck.DUPLICATE
    return DuplicateCheck.NOT_DUPLICATE
