"""Per-profile list of picked photos that have not been submitted yet.

Staged photos live in memory only. After a restart the list is rebuilt from
the photos already persisted for the profile, which is enough for duplicate
detection to keep working across sessions.
"""
import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field

from app.context import CancellationToken, PipelineContext
from app.services.content_hasher import generate_image_hash
from app.services.duplicate_guard import DuplicateCheck, check_duplicate
from app.services.image_optimizer import optimize_image_async
from app.services.image_validator import validate_image
from app.utils.exceptions import DuplicateLookupFailed, DuplicatePhoto, InputRejected

logger = logging.getLogger(__name__)


@dataclass
class StagedPhoto:
    local_path: str | None
    content_hash: str | None
    staged_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    width: int | None = None
    height: int | None = None
    size: int | None = None
    thumbnail_path: str | None = None
    persisted_id: str | None = None
    url: str | None = None

    @property
    def is_persisted(self) -> bool:
        return self.persisted_id is not None

    def discard_files(self) -> None:
        for path in (self.local_path, self.thumbnail_path):
            if path and not self.is_persisted and os.path.exists(path):
                os.remove(path)


class StagingArea:
    def __init__(self):
        self._staged: dict[str, list[StagedPhoto]] = {}
        self._loaded: set[str] = set()
        self._active: dict[str, CancellationToken] = {}

    def get(self, profile_id: str) -> list[StagedPhoto]:
        return self._staged.setdefault(profile_id, [])

    def is_loaded(self, profile_id: str) -> bool:
        return profile_id in self._loaded

    async def load_existing(self, ctx: PipelineContext) -> list[StagedPhoto]:
        """Seed the list with already persisted photos, once per profile."""
        staged = self.get(ctx.profile_id)
        if ctx.profile_id in self._loaded:
            return staged
        known = {p.persisted_id for p in staged if p.persisted_id}
        existing = await ctx.photos.list_for_profile(ctx.profile_id)
        persisted = [
            StagedPhoto(local_path=None, content_hash=p.content_hash, persisted_id=p.id, url=p.url)
            for p in existing
            if p.id not in known
        ]
        if persisted:
            logger.info("Loaded %d existing photos for profile %s", len(persisted), ctx.profile_id)
        staged[:0] = persisted
        self._loaded.add(ctx.profile_id)
        return staged

    def add(self, profile_id: str, photo: StagedPhoto) -> None:
        self.get(profile_id).append(photo)

    def remove(self, profile_id: str, staged_id: str) -> StagedPhoto | None:
        staged = self.get(profile_id)
        for i, photo in enumerate(staged):
            if photo.staged_id == staged_id:
                del staged[i]
                photo.discard_files()
                return photo
        return None

    def discard(self, profile_id: str) -> None:
        for photo in self._staged.pop(profile_id, []):
            photo.discard_files()
        self._loaded.discard(profile_id)

    def begin_submission(self, profile_id: str) -> CancellationToken | None:
        """Return a fresh token, or None if a submission is already running."""
        if profile_id in self._active:
            return None
        token = CancellationToken()
        self._active[profile_id] = token
        return token

    def end_submission(self, profile_id: str) -> None:
        self._active.pop(profile_id, None)

    def cancel_submission(self, profile_id: str) -> bool:
        token = self._active.get(profile_id)
        if token is None:
            return False
        token.cancel()
        return True


async def stage_photo(ctx: PipelineContext, area: StagingArea, source_path: str) -> StagedPhoto:
    """Validate, optimize, fingerprint and de-duplicate a picked image, then stage it.

    ``source_path`` is left in place; only the optimized copies are tracked.
    """
    staged = await area.load_existing(ctx)
    if len(staged) >= ctx.settings.max_photos:
        raise InputRejected(f"You can upload up to {ctx.settings.max_photos} photos")

    validation = await asyncio.to_thread(validate_image, source_path, ctx.settings)
    if not validation.is_valid:
        raise InputRejected(validation.error or "Please select a different photo")

    result = await optimize_image_async(
        source_path,
        generate_thumbnail=True,
        config=ctx.settings,
        output_dir=staging_dir(ctx.settings.data_dir),
    )
    optimized = result.optimized
    thumbnail_path = result.thumbnail.path if result.thumbnail else None
    photo = StagedPhoto(
        local_path=optimized.path,
        content_hash=await asyncio.to_thread(generate_image_hash, optimized.path),
        width=optimized.width,
        height=optimized.height,
        size=optimized.size,
        thumbnail_path=thumbnail_path,
    )
    logger.info("Generated content hash: %s...", photo.content_hash[:16])

    check = await check_duplicate(photo.content_hash, staged, ctx.profile_id, ctx.photos)
    if check is DuplicateCheck.LOOKUP_FAILED:
        if ctx.settings.duplicate_lookup_failure_policy == "abort":
            photo.discard_files()
            raise DuplicateLookupFailed()
        logger.warning("Staging photo %s... without a remote duplicate check", photo.content_hash[:16])
    if check is DuplicateCheck.DUPLICATE:
        photo.discard_files()
        raise DuplicatePhoto()

    # Re-check the limit: the list may have grown while we were optimizing
    if len(staged) >= ctx.settings.max_photos:
        photo.discard_files()
        raise InputRejected(f"You can upload up to {ctx.settings.max_photos} photos")

    area.add(ctx.profile_id, photo)
    return photo


def staging_dir(data_dir: str) -> str:
    path = os.path.join(data_dir, "staging")
    os.makedirs(path, exist_ok=True)
    return path
