import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from app.context import CancellationToken, PipelineContext
from app.models.photo import ModerationStatus, Photo
from app.models.profile import Profile
from app.services.moderation import EXPLICIT_CONTENT, REJECTION_REASONS
from app.services.storage import StorageError
from app.utils.exceptions import PhotoRejected

logger = logging.getLogger(__name__)


async def _flag_profile_for_review(ctx: PipelineContext) -> None:
    try:
        async with ctx.session_factory() as db:
            await db.execute(
                update(Profile).where(Profile.id == ctx.profile_id).values(photo_review_required=True)
            )
            await db.commit()
    except SQLAlchemyError:
        # The rejection stands even if the flag cannot be saved
        logger.exception("Could not flag profile %s for photo review", ctx.profile_id)


async def _remove_rejected(ctx: PipelineContext, photo: Photo, reason: str) -> None:
    await ctx.photos.reject(photo.id, reason=reason)
    paths = [p for p in (photo.storage_path, photo.thumbnail_path) if p]
    try:
        await ctx.storage.remove(paths)
    except StorageError:
        logger.exception("Could not remove stored object(s) %s of rejected photo %s", paths, photo.id)


async def moderate_photo(
    ctx: PipelineContext,
    photo: Photo,
    index: int,
    token: CancellationToken | None = None,
) -> ModerationStatus:
    """Run the classifier for a freshly uploaded photo and apply the verdict.

    An explicit rejection deletes the object and the row and raises
    ``PhotoRejected``. A classifier outage leaves the photo pending.
    """
    classify = ctx.classifier.classify(photo.url, photo.id, ctx.profile_id, ctx.access_token)
    verdict = await (token.run(classify) if token else classify)

    if verdict.error:
        logger.warning(
            "moderate-photo failed for photo %d (%s), leaving it pending: %s",
            index + 1, photo.id, verdict.error,
        )
        return ModerationStatus.PENDING

    if verdict.approved:
        await ctx.photos.update_status(photo.id, ModerationStatus.APPROVED)
        logger.info("Photo %d (%s) approved", index + 1, photo.id)
        return ModerationStatus.APPROVED

    if verdict.reason in REJECTION_REASONS:
        logger.warning(
            "Photo %d (%s) rejected by moderation: %s %s",
            index + 1, photo.id, verdict.reason, ", ".join(verdict.labels),
        )
        await _remove_rejected(
            ctx,
            photo,
            reason=f"{verdict.reason}: {', '.join(verdict.labels)}" if verdict.labels else verdict.reason,
        )
        if verdict.reason == EXPLICIT_CONTENT:
            await _flag_profile_for_review(ctx)
        raise PhotoRejected(index, reason=verdict.reason)

    logger.warning(
        "Photo %d (%s) not approved with unknown reason %r, leaving it pending",
        index + 1, photo.id, verdict.reason,
    )
    return ModerationStatus.PENDING
