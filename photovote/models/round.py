"""
Round model
라운드 데이터 모델
"""

from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from photovote.core.database import Base


class Round(Base):
    """
    Elimination unit of exactly three candidate photos.
    winning_photo_id and tie_photos are mutually exclusive.
    """

    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_rounds_room_number"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    # Candidate photo IDs (JSON array of 3)
    photo_ids = Column(JSON, nullable=False)

    # Result
    winning_photo_id = Column(String(36), ForeignKey("photos.id"), nullable=True)
    tie_photos = Column(JSON(none_as_null=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", foreign_keys=[room_id])

    def __repr__(self):
        return f"<Round(id={self.id}, room_id={self.room_id}, number={self.round_number})>"

    @property
    def tie_pending(self) -> bool:
        return bool(self.tie_photos)

    @property
    def is_concluded(self) -> bool:
        return self.winning_photo_id is not None
