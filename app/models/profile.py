from sqlalchemy import Column, String, Integer, Boolean

from app.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, unique=True)
    display_name = Column(String, nullable=True)
    photo_blur_enabled = Column(Boolean, nullable=False, default=False)
    photo_review_required = Column(Boolean, nullable=False, default=False)
    onboarding_step = Column(Integer, nullable=False, default=1)
