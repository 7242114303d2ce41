import logging
import os
import tempfile

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from app.context import PipelineContext
from app.dependencies import get_pipeline_context, get_staging_area
from app.schemas.photo import PhotoResponse, ReorderRequest, StagedPhotoResponse, SubmitRequest
from app.services.staging import StagingArea, stage_photo, staging_dir
from app.services.storage import StorageError
from app.services.submission import BatchResult, submit_batch
from app.utils.exceptions import InputRejected, SubmissionCancelled, SubmissionInProgress
from app.utils.response import progress_percent, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles/{profile_id}", tags=["photos"])


def _photo_data(photo) -> dict:
    return PhotoResponse.model_validate(photo).model_dump()


def _batch_data(result: BatchResult) -> dict:
    return {
        "completed": result.completed,
        "total": result.total,
        "progress": progress_percent(result.completed, result.total),
        "failed_index": result.failed_index,
        "failed_position": result.failed_index + 1 if result.failed_index is not None else None,
        "photos": [_photo_data(p) for p in result.persisted],
    }


@router.get("/photos")
async def list_photos(ctx: PipelineContext = Depends(get_pipeline_context)):
    photos = await ctx.photos.list_for_profile(ctx.profile_id)
    return success_response(data=[_photo_data(p) for p in photos])


@router.get("/staged")
async def list_staged(
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    staged = await area.load_existing(ctx)
    return success_response(data=[StagedPhotoResponse.model_validate(p).model_dump() for p in staged])


@router.post("/staged", status_code=201)
async def stage(
    file: UploadFile = File(...),
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    content = await file.read()
    if not content:
        raise InputRejected("Image file is empty")

    fd, source_path = tempfile.mkstemp(suffix="_source", dir=staging_dir(ctx.settings.data_dir))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        staged = await stage_photo(ctx, area, source_path)
    finally:
        os.remove(source_path)

    return success_response(data=StagedPhotoResponse.model_validate(staged).model_dump())


@router.delete("/staged/{staged_id}")
async def unstage(
    staged_id: str,
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    removed = area.remove(ctx.profile_id, staged_id)
    if removed is None:
        raise HTTPException(status_code=404, detail="Staged photo not found")
    return success_response(data={"staged_id": staged_id})


@router.delete("/staged")
async def discard_staged(
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    area.discard(ctx.profile_id)
    return success_response(data=None, message="Staged photos discarded")


@router.post("/photos/submit")
async def submit_photos(
    payload: SubmitRequest | None = None,
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    token = area.begin_submission(ctx.profile_id)
    if token is None:
        raise SubmissionInProgress()

    try:
        staged = await area.load_existing(ctx)
        result = await submit_batch(
            ctx,
            staged,
            token=token,
            on_progress=lambda done, total: logger.info(
                "Upload progress %d%% for profile %s", progress_percent(done, total), ctx.profile_id
            ),
            photo_blur_enabled=payload.photo_blur_enabled if payload else None,
        )
    finally:
        area.end_submission(ctx.profile_id)

    data = _batch_data(result)
    if result.cancelled:
        raise SubmissionCancelled(data=data)
    if result.error is not None:
        result.error.data = data
        raise result.error
    return success_response(data=data, message="Photos uploaded")


@router.post("/photos/submit/cancel")
async def cancel_submission(
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    cancelled = area.cancel_submission(ctx.profile_id)
    return success_response(data={"cancelled": cancelled})


@router.delete("/photos/{photo_id}")
async def delete_photo(
    photo_id: str,
    ctx: PipelineContext = Depends(get_pipeline_context),
    area: StagingArea = Depends(get_staging_area),
):
    photo = await ctx.photos.get(photo_id)
    if photo is None or photo.profile_id != ctx.profile_id:
        raise HTTPException(status_code=404, detail="Photo not found")

    paths = [p for p in (photo.storage_path, photo.thumbnail_path) if p]
    try:
        await ctx.storage.remove(paths)
    except StorageError:
        logger.exception("Error deleting %s from storage", paths)

    await ctx.photos.delete(photo_id)
    photos = await ctx.photos.normalize_order(ctx.profile_id)

    staged = area.get(ctx.profile_id)
    staged[:] = [p for p in staged if p.persisted_id != photo_id]

    return success_response(data=[_photo_data(p) for p in photos])


@router.put("/photos/order")
async def reorder_photos(
    payload: ReorderRequest,
    ctx: PipelineContext = Depends(get_pipeline_context),
):
    try:
        photos = await ctx.photos.reorder(ctx.profile_id, payload.photo_ids)
    except ValueError as e:
        raise InputRejected(str(e))
    return success_response(data=[_photo_data(p) for p in photos])
