"""
Family model
가족 데이터 모델
"""

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from photovote.core.database import Base

from photovote.schemas.family import FamilyLabel


class Family(Base):
    """
    가족 (신랑네 / 신부네 / 우리부부)
    첫 선택 시 생성되며 방마다 라벨당 하나
    """

    __tablename__ = "families"
    __table_args__ = (
        UniqueConstraint("room_id", "label", name="uq_families_room_label"),
    )

    id = Column(String(36), primary_key=True, index=True)
    room_id = Column(String(36), ForeignKey("rooms.id"), nullable=False, index=True)
    label = Column(Enum(FamilyLabel, values_callable=lambda obj: [e.value for e in obj]),
                   nullable=False)
    device_id = Column(String(36), nullable=True)  # 가족을 선택한 기기

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", foreign_keys=[room_id])

    def __repr__(self):
        return f"<Family(id={self.id}, room_id={self.room_id}, label={self.label})>"
