"""
Pure game rules
게임 규칙 - 방 코드, 셔플, 라운드 분할, 득표 집계

Everything here is side-effect free so it can be property-tested without a
database. Randomness is always taken from an injectable ``random.Random``.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class TallyResult:
    """집계 결과: 단독 1위 사진 또는 동점 사진 목록"""
    winning_photo_id: Optional[str]
    is_tie: bool
    tie_photos: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)


def generate_room_code(rng: random.Random = None, min_length: int = 4, max_length: int = 6) -> str:
    """
    Random numeric room code of min_length..max_length digits.
    Leading zeros are kept ("0042" is a valid 4-digit code).
    """
    rng = rng or random
    length = rng.randint(min_length, max_length)
    return str(rng.randrange(10 ** length)).zfill(length)


def shuffle_photos(items: Sequence[T], rng: random.Random = None) -> List[T]:
    """Fisher-Yates shuffle on a copy of ``items``"""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def partition_into_rounds(items: Sequence[T], size: int = 3) -> List[List[T]]:
    """Split into consecutive groups of exactly ``size``; a shorter tail is dropped"""
    if size < 1:
        raise ValueError("size must be positive")

    full = len(items) - len(items) % size
    return [list(items[i:i + size]) for i in range(0, full, size)]


def tally_votes(photo_ids: Iterable[str]) -> TallyResult:
    """
    Count votes per photo and pick the leader.

    Two or more photos sharing the maximum count is a tie: no winner and the
    tied photos listed in the order they first received a vote. With three
    families and three candidates this only happens on a 1-1-1 split.
    """
    counts: Dict[str, int] = {}
    for photo_id in photo_ids:
        counts[photo_id] = counts.get(photo_id, 0) + 1

    if not counts:
        raise ValueError("투표가 없습니다.")

    max_votes = max(counts.values())
    leaders = [photo_id for photo_id, count in counts.items() if count == max_votes]

    if len(leaders) > 1:
        return TallyResult(winning_photo_id=None, is_tie=True, tie_photos=leaders, counts=counts)

    return TallyResult(winning_photo_id=leaders[0], is_tie=False, tie_photos=[], counts=counts)
