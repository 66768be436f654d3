# Database models
from .room import Room
from .family import Family
from .photo import Photo
from .round import Round
from .vote import Vote

__all__ = [
    "Room",
    "Family",
    "Photo",
    "Round",
    "Vote"
]
