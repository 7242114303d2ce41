from pydantic import BaseModel


class ProfileCreate(BaseModel):
    user_id: str
    display_name: str | None = None
    id: str | None = None


class ProfileUpdate(BaseModel):
    display_name: str | None = None
    photo_blur_enabled: bool | None = None


class ProfileResponse(BaseModel):
    id: str
    user_id: str
    display_name: str | None = None
    photo_blur_enabled: bool
    photo_review_required: bool
    onboarding_step: int

    model_config = {"from_attributes": True}
