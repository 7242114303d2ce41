"""Sequential upload + moderation of a profile's staged photos.

Photos are processed one at a time in list order. The first fatal error
(upload failure, moderation rejection, cancellation) stops the batch; photos
that already went through stay persisted and are marked on their staged
entries so a retry only sends what is left.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from app.context import CancellationToken, OperationCancelled, PipelineContext
from app.models.photo import IllegalTransition, ModerationStatus, Photo
from app.models.profile import Profile
from app.services.moderation_gate import moderate_photo
from app.services.staging import StagedPhoto
from app.services.storage import StorageError
from app.services.uploader import upload_photo
from app.utils.exceptions import AppException, InputRejected, PhotoRejected, PhotoUploadError

logger = logging.getLogger(__name__)

PHOTOS_ONBOARDING_STEP = 2

ProgressCallback = Callable[[int, int], None]


@dataclass
class BatchResult:
    total: int
    persisted: list[Photo] = field(default_factory=list)
    statuses: list[ModerationStatus] = field(default_factory=list)
    failed_index: int | None = None
    error: AppException | None = None
    cancelled: bool = False
    merged: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled

    @property
    def completed(self) -> int:
        return len(self.persisted) + self.merged


async def _save_profile_progress(ctx: PipelineContext, photo_blur_enabled: bool | None) -> None:
    try:
        async with ctx.session_factory() as db:
            await db.execute(
                update(Profile)
                .where(Profile.id == ctx.profile_id, Profile.onboarding_step < PHOTOS_ONBOARDING_STEP)
                .values(onboarding_step=PHOTOS_ONBOARDING_STEP)
            )
            if photo_blur_enabled is not None:
                await db.execute(
                    update(Profile)
                    .where(Profile.id == ctx.profile_id)
                    .values(photo_blur_enabled=photo_blur_enabled)
                )
            await db.commit()
    except SQLAlchemyError:
        # Photos are already saved; the preference can be set again from settings
        logger.exception("Error updating profile %s after photo upload", ctx.profile_id)


async def _normalize_order(ctx: PipelineContext, result: BatchResult) -> None:
    try:
        photos = await ctx.photos.normalize_order(ctx.profile_id)
    except SQLAlchemyError:
        logger.exception("Error renumbering photos for profile %s", ctx.profile_id)
        return
    by_id = {p.id: p for p in photos}
    result.persisted = [by_id.get(p.id, p) for p in result.persisted]


async def submit_batch(
    ctx: PipelineContext,
    staged: list[StagedPhoto],
    token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
    photo_blur_enabled: bool | None = None,
) -> BatchResult:
    """Upload and moderate every staged photo that is not persisted yet.

    ``staged`` is updated in place: persisted entries get their row id and
    URL, and a photo removed by moderation is dropped from the list.

    A new photo's ``display_order`` is the slot it occupies in ``staged``,
    so a retry puts every photo back where the interrupted attempt did.
    """
    if len(staged) < ctx.settings.min_photos:
        raise InputRejected(f"Please add at least {ctx.settings.min_photos} photos to continue")

    new_photos = [p for p in staged if not p.is_persisted]
    result = BatchResult(total=len(new_photos))
    needs_normalize = False

    if not new_photos:
        logger.info("All photos already uploaded for profile %s, skipping upload step", ctx.profile_id)
    else:
        logger.info("Uploading %d new photos for profile %s", len(new_photos), ctx.profile_id)
        first_order = len(staged) - len(new_photos)

        for i, photo in enumerate(new_photos):
            step = "upload"
            try:
                if token:
                    token.raise_if_cancelled()
                saved = await upload_photo(ctx, photo, first_order + i, i, token)
                status = ModerationStatus(saved.moderation_status)
                if status is ModerationStatus.PENDING:
                    step = "moderation"
                    status = await moderate_photo(ctx, saved, i, token)
            except PhotoRejected as e:
                staged.remove(photo)
                photo.discard_files()
                result.failed_index, result.error = i, e
                break
            except PhotoUploadError as e:
                result.failed_index, result.error = i, e
                break
            except OperationCancelled:
                logger.info("Photo upload cancelled at photo %d for profile %s", i + 1, ctx.profile_id)
                result.failed_index, result.cancelled = i, True
                break
            except (SQLAlchemyError, StorageError, IllegalTransition) as e:
                logger.exception("Photo %d %s failed for profile %s: %s", i + 1, step, ctx.profile_id, e)
                result.failed_index = i
                result.error = PhotoUploadError(i, f"Failed to save photo {i + 1}. Please try again.")
                break

            if saved.display_order != first_order + i:
                needs_normalize = True
            if any(p is not photo and p.persisted_id == saved.id for p in staged):
                # Same row is already in the list; keep a single entry for it
                logger.info("Photo %d is already staged as %s, dropping the copy", i + 1, saved.id)
                staged.remove(photo)
                photo.discard_files()
                result.merged += 1
            else:
                photo.discard_files()
                photo.local_path = photo.thumbnail_path = None
                photo.persisted_id, photo.url = saved.id, saved.url
                result.persisted.append(saved)
                result.statuses.append(status)
            if on_progress:
                on_progress(i + 1, len(new_photos))

    if needs_normalize:
        await _normalize_order(ctx, result)

    if result.ok:
        await _save_profile_progress(ctx, photo_blur_enabled)
    else:
        logger.error(
            "Photo upload stopped at photo %s of %d for profile %s: %s",
            (result.failed_index or 0) + 1, result.total, ctx.profile_id,
            "cancelled" if result.cancelled else result.error.message,
        )
    return result
