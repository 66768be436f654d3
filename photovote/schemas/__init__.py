# Pydantic schemas
from .room import (
    RoomStatus, RoomResponse, RoomCreateResponse, RoomJoinRequest,
    RoomJoinResponse, PhotoCreate, PhotoResponse
)
from .family import (
    FamilyLabel, FAMILY_LABELS, FamilyClaim, FamilyResponse, FamilyClaimResponse
)
from .round import (
    RoundResponse, RoundDetail, VoteCreate, VoteResponse, RoundOutcome
)
from .roulette import (
    RouletteState, RouletteSpinResponse, RouletteCommitRequest
)
from .live import (
    RoomPhase, VoteSummary, RoomSnapshot, WinningPhoto, ResultGallery
)
from .common import (
    SessionInfo
)

__all__ = [
    # Room schemas
    "RoomStatus", "RoomResponse", "RoomCreateResponse", "RoomJoinRequest",
    "RoomJoinResponse", "PhotoCreate", "PhotoResponse",

    # Family schemas
    "FamilyLabel", "FAMILY_LABELS", "FamilyClaim", "FamilyResponse", "FamilyClaimResponse",

    # Round schemas
    "RoundResponse", "RoundDetail", "VoteCreate", "VoteResponse", "RoundOutcome",

    # Roulette schemas
    "RouletteState", "RouletteSpinResponse", "RouletteCommitRequest",

    # Live view schemas
    "RoomPhase", "VoteSummary", "RoomSnapshot", "WinningPhoto", "ResultGallery",

    # Common schemas
    "SessionInfo"
]
