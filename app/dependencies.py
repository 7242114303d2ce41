from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.context import PipelineContext
from app.database import async_session
from app.models.profile import Profile
from app.services.moderation import ModerationClassifier, build_classifier
from app.services.staging import StagingArea
from app.services.storage import ObjectStorage


async def verify_api_key(x_api_key: str = Header(default="")) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


def get_storage() -> ObjectStorage:
    return ObjectStorage(settings.data_dir, settings.storage_bucket, settings.public_base_url)


def get_classifier() -> ModerationClassifier:
    return build_classifier(settings)


def get_staging_area(request: Request) -> StagingArea:
    return request.app.state.staging


def _bearer_token(authorization: str) -> str | None:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


async def get_pipeline_context(
    profile_id: str,
    authorization: str = Header(default=""),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    storage: ObjectStorage = Depends(get_storage),
    classifier: ModerationClassifier = Depends(get_classifier),
) -> PipelineContext:
    async with session_factory() as db:
        if await db.get(Profile, profile_id) is None:
            raise HTTPException(status_code=404, detail="Profile not found")

    return PipelineContext(
        profile_id=profile_id,
        session_factory=session_factory,
        storage=storage,
        classifier=classifier,
        settings=settings,
        access_token=_bearer_token(authorization),
    )
