from app.models.profile import Profile
from app.models.photo import Photo, ModerationStatus

__all__ = ["Profile", "Photo", "ModerationStatus"]
