import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.photo import ModerationStatus, Photo, transition

logger = logging.getLogger(__name__)


class PhotoConflict(Exception):
    """Insert hit the (profile_id, content_hash) or single-primary constraint."""


class PhotoRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def list_for_profile(self, profile_id: str) -> list[Photo]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Photo)
                .where(Photo.profile_id == profile_id)
                .order_by(Photo.display_order.asc())
            )
            return list(result.scalars().all())

    async def count_for_profile(self, profile_id: str) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.count()).select_from(Photo).where(Photo.profile_id == profile_id)
            )
            return result.scalar_one()

    async def find_by_hash(self, profile_id: str, content_hash: str) -> Photo | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Photo).where(
                    Photo.profile_id == profile_id,
                    Photo.content_hash == content_hash,
                )
            )
            return result.scalars().first()

    async def get(self, photo_id: str) -> Photo | None:
        async with self._session_factory() as db:
            return await db.get(Photo, photo_id)

    async def insert(self, photo: Photo) -> Photo:
        async with self._session_factory() as db:
            db.add(photo)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise PhotoConflict(str(e.orig)) from e
            return photo

    async def update_status(
        self,
        photo_id: str,
        target: ModerationStatus,
        reason: str | None = None,
    ) -> Photo | None:
        async with self._session_factory() as db:
            photo = await db.get(Photo, photo_id)
            if photo is None:
                return None
            photo.moderation_status = transition(photo.moderation_status, target).value
            photo.moderation_reason = reason
            photo.moderated_at = datetime.now(timezone.utc).isoformat()
            await db.commit()
            return photo

    async def delete(self, photo_id: str) -> bool:
        async with self._session_factory() as db:
            photo = await db.get(Photo, photo_id)
            if photo is None:
                return False
            await db.delete(photo)
            await db.commit()
            return True

    async def reject(self, photo_id: str, reason: str | None = None) -> Photo | None:
        """Move the photo to ``rejected`` and delete its row in one transaction.

        If the delete fails the transaction rolls back and the row stays
        ``pending``, so a rejected row is never left visible.
        """
        async with self._session_factory() as db:
            photo = await db.get(Photo, photo_id)
            if photo is None:
                return None
            photo.moderation_status = transition(photo.moderation_status, ModerationStatus.REJECTED).value
            photo.moderation_reason = reason
            photo.moderated_at = datetime.now(timezone.utc).isoformat()
            await db.flush()
            await db.delete(photo)
            await db.commit()
            return photo

    async def _apply_order(self, db: AsyncSession, profile_id: str, ordered_ids: list[str]) -> None:
        # Clear primary first so the single-primary index never sees two rows
        await db.execute(
            update(Photo).where(Photo.profile_id == profile_id).values(is_primary=False)
        )
        for order, photo_id in enumerate(ordered_ids):
            await db.execute(
                update(Photo)
                .where(Photo.id == photo_id, Photo.profile_id == profile_id)
                .values(display_order=order, is_primary=order == 0)
            )

    async def reorder(self, profile_id: str, ordered_ids: list[str]) -> list[Photo]:
        """Assign display_order by position in ``ordered_ids``; the first photo becomes primary."""
        async with self._session_factory() as db:
            result = await db.execute(select(Photo.id).where(Photo.profile_id == profile_id))
            existing = set(result.scalars().all())
            if set(ordered_ids) != existing or len(ordered_ids) != len(existing):
                raise ValueError("Photo order must list every photo of the profile exactly once")
            await self._apply_order(db, profile_id, ordered_ids)
            await db.commit()
        return await self.list_for_profile(profile_id)

    async def normalize_order(self, profile_id: str) -> list[Photo]:
        """Make display_order dense from 0 again, keeping the current relative order."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Photo.id)
                .where(Photo.profile_id == profile_id)
                .order_by(Photo.display_order.asc(), Photo.created_at.asc())
            )
            await self._apply_order(db, profile_id, list(result.scalars().all()))
            await db.commit()
        return await self.list_for_profile(profile_id)
