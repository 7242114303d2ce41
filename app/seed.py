import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Profile


SEED_PROFILE_ID = str(uuid.uuid5(uuid.NAMESPACE_DNS, "profile-demo"))
SEED_USER_ID = str(uuid.uuid5(uuid.NAMESPACE_DNS, "user-demo"))


async def seed_data(session: AsyncSession) -> None:
    result = await session.execute(select(Profile).limit(1))
    if result.scalars().first() is not None:
        return

    session.add(Profile(
        id=SEED_PROFILE_ID,
        user_id=SEED_USER_ID,
        display_name="Demo",
        photo_blur_enabled=False,
        photo_review_required=False,
        onboarding_step=1,
    ))

    await session.commit()
