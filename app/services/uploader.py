import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from app.context import CancellationToken, PipelineContext
from app.models.photo import ModerationStatus, Photo
from app.services.photo_repository import PhotoConflict
from app.services.staging import StagedPhoto
from app.services.storage import StorageError
from app.utils.exceptions import PhotoUploadError

logger = logging.getLogger(__name__)


def build_storage_path(profile_id: str, index: int, suffix: str = "") -> str:
    return f"{profile_id}/{int(time.time() * 1000)}_{index}{suffix}.jpg"


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


async def _guarded(token: CancellationToken | None, awaitable):
    return await (token.run(awaitable) if token else awaitable)


async def upload_photo(
    ctx: PipelineContext,
    staged: StagedPhoto,
    display_order: int,
    index: int,
    token: CancellationToken | None = None,
) -> Photo:
    """Store the optimized bytes and record a pending ``photos`` row.

    A uniqueness conflict means the photo is already recorded: the existing
    row wins and the object we just wrote is removed again.
    """
    storage_path = build_storage_path(ctx.profile_id, index)
    try:
        data = await asyncio.to_thread(_read_bytes, staged.local_path)
        await _guarded(token, ctx.storage.upload(storage_path, data, "image/jpeg", upsert=True))
        thumbnail_path = None
        if staged.thumbnail_path:
            thumbnail_path = build_storage_path(ctx.profile_id, index, "_thumb")
            await _guarded(
                token,
                ctx.storage.upload(
                    thumbnail_path,
                    await asyncio.to_thread(_read_bytes, staged.thumbnail_path),
                    "image/jpeg",
                    upsert=True,
                ),
            )
    except (OSError, StorageError) as e:
        logger.error("Upload error for photo %d: %s", index, e)
        raise PhotoUploadError(index, f"Failed to upload photo {index + 1}. Please try again.") from e

    public_url = ctx.storage.public_url(storage_path)
    photo = Photo(
        id=str(uuid.uuid4()),
        profile_id=ctx.profile_id,
        storage_path=storage_path,
        url=public_url,
        thumbnail_path=thumbnail_path,
        display_order=display_order,
        is_primary=display_order == 0,
        content_hash=staged.content_hash,
        moderation_status=ModerationStatus.PENDING.value,
        created_at=datetime.now(timezone.utc).isoformat(),
    )

    try:
        saved = await _guarded(token, ctx.photos.insert(photo))
    except PhotoConflict:
        existing = await ctx.photos.find_by_hash(ctx.profile_id, staged.content_hash)
        if existing is None:
            logger.error("Photo %d hit a constraint but no row with its hash exists", index)
            await ctx.storage.remove([p for p in (storage_path, thumbnail_path) if p])
            raise PhotoUploadError(index, f"Failed to save photo {index + 1}. Please try again.")
        logger.info("Photo %d already exists in database, skipping", index + 1)
        kept = {existing.storage_path, existing.thumbnail_path}
        await ctx.storage.remove([p for p in (storage_path, thumbnail_path) if p and p not in kept])
        return existing
    except SQLAlchemyError as e:
        logger.error("Database error for photo %d: %s", index, e)
        raise PhotoUploadError(index, f"Failed to save photo {index + 1}. Please try again.") from e

    logger.info("Photo %d saved to database as %s", index + 1, saved.id)
    return saved
