import enum

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, UniqueConstraint, text

from app.database import Base


class ModerationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Rejected photos are deleted right after the transition, so nothing leaves it.
ALLOWED_TRANSITIONS: dict[ModerationStatus, frozenset[ModerationStatus]] = {
    ModerationStatus.PENDING: frozenset({ModerationStatus.APPROVED, ModerationStatus.REJECTED}),
    ModerationStatus.APPROVED: frozenset(),
    ModerationStatus.REJECTED: frozenset(),
}


class IllegalTransition(Exception):
    def __init__(self, current: ModerationStatus, target: ModerationStatus):
        super().__init__(f"Illegal moderation transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


def transition(current: ModerationStatus | str, target: ModerationStatus) -> ModerationStatus:
    """Return ``target`` if moving there from ``current`` is allowed."""
    current = ModerationStatus(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise IllegalTransition(current, target)
    return target


class Photo(Base):
    __tablename__ = "photos"
    __table_args__ = (
        UniqueConstraint("profile_id", "content_hash", name="uq_photos_profile_hash"),
        Index(
            "uq_photos_profile_primary",
            "profile_id",
            unique=True,
            sqlite_where=text("is_primary = 1"),
            postgresql_where=text("is_primary"),
        ),
    )

    id = Column(String, primary_key=True)
    profile_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_path = Column(String, nullable=False)
    url = Column(String, nullable=False)
    thumbnail_path = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    content_hash = Column(String(64), nullable=False)
    moderation_status = Column(String, nullable=False, default=ModerationStatus.PENDING.value)
    moderation_reason = Column(String, nullable=True)
    created_at = Column(String, nullable=False)
    moderated_at = Column(String, nullable=True)
