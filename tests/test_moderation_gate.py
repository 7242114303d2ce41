import pytest

from app.models.photo import ModerationStatus
from app.models.profile import Profile
from app.schemas.photo import ModerationVerdict
from app.services.moderation_gate import moderate_photo
from app.utils.exceptions import PhotoRejected

from conftest import FakeClassifier, persist_photo


async def _profile(ctx):
    async with ctx.session_factory() as db:
        return await db.get(Profile, ctx.profile_id)


@pytest.mark.asyncio
async def test_approved_photo_is_marked_approved(ctx):
    photo = await persist_photo(ctx, "a" * 64)

    status = await moderate_photo(ctx, photo, index=0)

    assert status is ModerationStatus.APPROVED
    stored = await ctx.photos.get(photo.id)
    assert stored.moderation_status == "approved"
    assert stored.moderated_at is not None
    assert ctx.classifier.calls == [
        {"photo_url": photo.url, "photo_id": photo.id, "profile_id": ctx.profile_id}
    ]


@pytest.mark.asyncio
async def test_explicit_content_deletes_row_and_object(ctx):
    ctx.classifier = FakeClassifier([
        ModerationVerdict(approved=False, reason="explicit_content", labels=["Explicit Nudity (97%)"]),
    ])
    photo = await persist_photo(ctx, "a" * 64)

    with pytest.raises(PhotoRejected) as exc_info:
        await moderate_photo(ctx, photo, index=1)

    assert exc_info.value.index == 1
    assert exc_info.value.reason == "explicit_content"
    assert "Photo 2 contains inappropriate content" in exc_info.value.message
    assert await ctx.photos.get(photo.id) is None
    assert not ctx.storage.exists(photo.storage_path)
    assert (await _profile(ctx)).photo_review_required is True


@pytest.mark.asyncio
async def test_needs_review_also_removes_photo(ctx):
    ctx.classifier = FakeClassifier([ModerationVerdict(approved=False, reason="needs_review")])
    photo = await persist_photo(ctx, "a" * 64)

    with pytest.raises(PhotoRejected):
        await moderate_photo(ctx, photo, index=0)

    assert await ctx.photos.get(photo.id) is None
    assert not ctx.storage.exists(photo.storage_path)
    assert (await _profile(ctx)).photo_review_required is False


@pytest.mark.asyncio
async def test_service_error_leaves_photo_pending(ctx):
    ctx.classifier = FakeClassifier([ModerationVerdict(approved=False, error="HTTP 503")])
    photo = await persist_photo(ctx, "a" * 64)

    status = await moderate_photo(ctx, photo, index=0)

    assert status is ModerationStatus.PENDING
    stored = await ctx.photos.get(photo.id)
    assert stored.moderation_status == "pending"
    assert ctx.storage.exists(photo.storage_path)


@pytest.mark.asyncio
async def test_unknown_reason_leaves_photo_pending(ctx):
    ctx.classifier = FakeClassifier([ModerationVerdict(approved=False, reason="low_quality")])
    photo = await persist_photo(ctx, "a" * 64)

    status = await moderate_photo(ctx, photo, index=0)

    assert status is ModerationStatus.PENDING
    assert await ctx.photos.get(photo.id) is not None
