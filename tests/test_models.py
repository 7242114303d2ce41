import pytest
from sqlalchemy.exc import IntegrityError

from app.models.photo import IllegalTransition, ModerationStatus, Photo, transition
from app.models.profile import Profile


def _photo(photo_id, content_hash, display_order=0, is_primary=False, profile_id="profile-001"):
    return Photo(
        id=photo_id,
        profile_id=profile_id,
        storage_path=f"{profile_id}/{photo_id}.jpg",
        url=f"http://test/storage/profile-photos/{profile_id}/{photo_id}.jpg",
        display_order=display_order,
        is_primary=is_primary,
        content_hash=content_hash,
        created_at="2026-01-10T10:00:00+00:00",
    )


@pytest.mark.asyncio
async def test_create_profile(session_factory):
    async with session_factory() as db:
        db.add(Profile(id="p-001", user_id="u-001", display_name="Sam"))
        await db.commit()

        result = await db.get(Profile, "p-001")
    assert result is not None
    assert result.display_name == "Sam"
    assert result.photo_blur_enabled is False
    assert result.onboarding_step == 1


@pytest.mark.asyncio
async def test_create_photo_defaults_to_pending(session_factory, profile):
    async with session_factory() as db:
        db.add(_photo("ph-001", "a" * 64, is_primary=True))
        await db.commit()

        result = await db.get(Photo, "ph-001")
    assert result.moderation_status == "pending"
    assert result.is_primary is True
    assert result.display_order == 0


@pytest.mark.asyncio
async def test_same_hash_twice_for_one_profile_is_rejected(session_factory, profile):
    async with session_factory() as db:
        db.add(_photo("ph-001", "b" * 64))
        await db.commit()

        db.add(_photo("ph-002", "b" * 64, display_order=1))
        with pytest.raises(IntegrityError):
            await db.commit()


@pytest.mark.asyncio
async def test_same_hash_for_different_profiles_is_allowed(session_factory, profile):
    async with session_factory() as db:
        db.add(Profile(id="profile-002", user_id="user-002"))
        db.add(_photo("ph-001", "c" * 64))
        db.add(_photo("ph-002", "c" * 64, profile_id="profile-002"))
        await db.commit()

        assert await db.get(Photo, "ph-002") is not None


@pytest.mark.asyncio
async def test_second_primary_photo_is_rejected(session_factory, profile):
    async with session_factory() as db:
        db.add(_photo("ph-001", "d" * 64, is_primary=True))
        await db.commit()

        db.add(_photo("ph-002", "e" * 64, display_order=1, is_primary=True))
        with pytest.raises(IntegrityError):
            await db.commit()


def test_pending_can_become_approved_or_rejected():
    assert transition(ModerationStatus.PENDING, ModerationStatus.APPROVED) is ModerationStatus.APPROVED
    assert transition("pending", ModerationStatus.REJECTED) is ModerationStatus.REJECTED


@pytest.mark.parametrize(
    "current,target",
    [
        (ModerationStatus.APPROVED, ModerationStatus.REJECTED),
        (ModerationStatus.APPROVED, ModerationStatus.PENDING),
        (ModerationStatus.REJECTED, ModerationStatus.APPROVED),
        (ModerationStatus.PENDING, ModerationStatus.PENDING),
    ],
)
def test_illegal_transitions_raise(current, target):
    with pytest.raises(IllegalTransition):
        transition(current, target)


def test_database_url_normalized_to_asyncpg():
    from app.database import normalize_database_url

    assert normalize_database_url("postgres://u:p@db/app") == "postgresql+asyncpg://u:p@db/app"
    assert normalize_database_url("postgresql://u:p@db/app") == "postgresql+asyncpg://u:p@db/app"
    assert normalize_database_url("sqlite+aiosqlite:///./data/db.sqlite3") == "sqlite+aiosqlite:///./data/db.sqlite3"
