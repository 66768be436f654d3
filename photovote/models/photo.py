"""
Photo model
사진 데이터 모델
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from photovote.core.database import Base


class Photo(Base):
    """Photo uploaded by the host; immutable once created"""

    __tablename__ = "photos"
    __table_args__ = (
        UniqueConstraint("room_id", "order_index", name="uq_photos_room_order"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    order_index = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", foreign_keys=[room_id])

    def __repr__(self):
        return f"<Photo(id={self.id}, room_id={self.room_id}, order={self.order_index})>"
