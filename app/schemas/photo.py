from pydantic import BaseModel, Field


class ValidationResult(BaseModel):
    is_valid: bool
    error: str | None = None


class OptimizedImage(BaseModel):
    path: str
    width: int
    height: int
    size: int


class OptimizationResult(BaseModel):
    optimized: OptimizedImage
    thumbnail: OptimizedImage | None = None


class ModerationVerdict(BaseModel):
    approved: bool = False
    reason: str | None = None
    labels: list[str] = []
    error: str | None = None


class PhotoResponse(BaseModel):
    id: str
    profile_id: str
    storage_path: str
    url: str
    display_order: int
    is_primary: bool
    content_hash: str
    moderation_status: str

    model_config = {"from_attributes": True}


class StagedPhotoResponse(BaseModel):
    staged_id: str
    content_hash: str | None = None
    width: int | None = None
    height: int | None = None
    size: int | None = None
    persisted_id: str | None = None
    url: str | None = None

    model_config = {"from_attributes": True}


class SubmitRequest(BaseModel):
    photo_blur_enabled: bool | None = None


class ReorderRequest(BaseModel):
    photo_ids: list[str] = Field(min_length=1)
