"""
Room model
방 데이터 모델
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum
from sqlalchemy.sql import func
from photovote.core.database import Base

from photovote.schemas.room import RoomStatus


class Room(Base):
    """One instance of the voting game, identified by a short numeric code"""

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, index=True)
    code = Column(String(6), nullable=False, unique=True, index=True)
    current_round = Column(Integer, nullable=True)
    status = Column(Enum(RoomStatus, values_callable=lambda obj: [e.value for e in obj]),
                    default=RoomStatus.LOBBY, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Room(id={self.id}, code={self.code}, status={self.status})>"
