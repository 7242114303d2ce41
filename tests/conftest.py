import asyncio
import os
import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.context import PipelineContext
from app.database import build_engine, create_tables
from app.models.photo import Photo
from app.models.profile import Profile
from app.schemas.photo import ModerationVerdict
from app.services.content_hasher import generate_image_hash
from app.services.moderation import ModerationClassifier
from app.services.staging import StagedPhoto
from app.services.storage import ObjectStorage

PROFILE_ID = "profile-001"


class FakeClassifier(ModerationClassifier):
    """Returns queued verdicts in order, then ``default``."""

    name = "fake"

    def __init__(self, verdicts=None, default=None):
        self.verdicts = list(verdicts or [])
        self.default = default or ModerationVerdict(approved=True)
        self.calls = []

    async def classify(self, photo_url, photo_id, profile_id, access_token=None):
        self.calls.append({"photo_url": photo_url, "photo_id": photo_id, "profile_id": profile_id})
        if self.verdicts:
            return self.verdicts.pop(0)
        return self.default


class BlockingClassifier(ModerationClassifier):
    """Never answers; lets tests cancel a submission mid-flight."""

    name = "blocking"

    def __init__(self):
        self.entered = asyncio.Event()

    async def classify(self, photo_url, photo_id, profile_id, access_token=None):
        self.entered.set()
        await asyncio.Event().wait()


def make_image(path, size=(800, 600), color=(200, 120, 80), image_format="JPEG") -> str:
    mode = "RGBA" if image_format == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    Image.new(mode, size, fill).save(path, format=image_format)
    return str(path)


def make_noise_image(path, size=(3000, 3000)) -> str:
    width, height = size
    Image.frombytes("RGB", size, os.urandom(width * height * 3)).save(path, format="PNG")
    return str(path)


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    # Disable API key auth for tests
    from app.config import settings
    monkeypatch.setattr(settings, "api_key", "")
    monkeypatch.setattr(settings, "openai_api_key", "")


@pytest.fixture
def test_settings(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        data_dir=str(data_dir),
        public_base_url="http://test/storage",
        api_key="",
        openai_api_key="",
    )


@pytest_asyncio.fixture
async def session_factory(test_settings):
    engine = build_engine(test_settings.database_url)
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def profile(session_factory):
    async with session_factory() as db:
        db.add(Profile(
            id=PROFILE_ID,
            user_id="user-001",
            display_name="Test",
            photo_blur_enabled=False,
            photo_review_required=False,
            onboarding_step=1,
        ))
        await db.commit()
    return PROFILE_ID


@pytest.fixture
def storage(test_settings):
    return ObjectStorage(test_settings.data_dir, test_settings.storage_bucket, test_settings.public_base_url)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def ctx(profile, session_factory, storage, classifier, test_settings):
    return PipelineContext(
        profile_id=profile,
        session_factory=session_factory,
        storage=storage,
        classifier=classifier,
        settings=test_settings,
        access_token="user-token",
    )


@pytest_asyncio.fixture
async def api_client(profile, session_factory, storage, classifier, test_settings, monkeypatch):
    from app import dependencies
    from app.main import app
    from app.services.staging import StagingArea

    monkeypatch.setattr(dependencies, "settings", test_settings)
    app.dependency_overrides[dependencies.get_session_factory] = lambda: session_factory
    app.dependency_overrides[dependencies.get_storage] = lambda: storage
    app.dependency_overrides[dependencies.get_classifier] = lambda: classifier
    app.state.staging = StagingArea()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def persist_photo(ctx, content_hash, display_order=0, status="pending"):
    """Insert a photo row (and its stored object) as if an earlier batch uploaded it."""
    photo_id = str(uuid.uuid4())
    storage_path = f"{ctx.profile_id}/seed_{photo_id}.jpg"
    await ctx.storage.upload(storage_path, b"stored-bytes", upsert=True)
    return await ctx.photos.insert(Photo(
        id=photo_id,
        profile_id=ctx.profile_id,
        storage_path=storage_path,
        url=ctx.storage.public_url(storage_path),
        display_order=display_order,
        is_primary=display_order == 0,
        content_hash=content_hash,
        moderation_status=status,
        created_at=datetime.now(timezone.utc).isoformat(),
    ))


def staged_from_image(path, **image_kwargs):
    """Stage an already optimized JPEG without going through the optimizer."""
    make_image(path, **image_kwargs)
    return StagedPhoto(local_path=str(path), content_hash=generate_image_hash(str(path)))
