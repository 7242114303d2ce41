import uuid as uuid_mod

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.dependencies import get_session_factory
from app.models.profile import Profile
from app.schemas.profile import ProfileCreate, ProfileResponse, ProfileUpdate
from app.utils.response import success_response

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", status_code=201)
async def create_profile(
    payload: ProfileCreate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with session_factory() as db:
        # Idempotent per user: return the existing profile
        result = await db.execute(select(Profile).where(Profile.user_id == payload.user_id))
        existing = result.scalars().first()
        if existing:
            return success_response(data=ProfileResponse.model_validate(existing).model_dump())

        profile = Profile(
            id=payload.id or str(uuid_mod.uuid4()),
            user_id=payload.user_id,
            display_name=payload.display_name,
            photo_blur_enabled=False,
            photo_review_required=False,
            onboarding_step=1,
        )
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
        data = ProfileResponse.model_validate(profile).model_dump()
    return success_response(data=data)


@router.get("/{profile_id}")
async def get_profile(
    profile_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with session_factory() as db:
        profile = await db.get(Profile, profile_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Profile not found")
        data = ProfileResponse.model_validate(profile).model_dump()
    return success_response(data=data)


@router.patch("/{profile_id}")
async def update_profile(
    profile_id: str,
    payload: ProfileUpdate,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with session_factory() as db:
        profile = await db.get(Profile, profile_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Profile not found")

        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(profile, key, value)

        await db.commit()
        await db.refresh(profile)
        data = ProfileResponse.model_validate(profile).model_dump()
    return success_response(data=data)
