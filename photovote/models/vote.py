"""
Vote model
투표 데이터 모델
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from photovote.core.database import Base


class Vote(Base):
    """A family's single choice among a round's three photos"""

    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("round_id", "family_id", name="uq_votes_round_family"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False)
    photo_id = Column(String(36), ForeignKey("photos.id"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    round = relationship("Round", foreign_keys=[round_id])
    family = relationship("Family", foreign_keys=[family_id])

    def __repr__(self):
        return f"<Vote(id={self.id}, family_id={self.family_id}, photo_id={self.photo_id})>"
