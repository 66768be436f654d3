"""
Game rule property tests
게임 규칙 속성 테스트 - 집계, 라운드 분할, 방 코드
"""

import random
import pytest
from collections import Counter
from hypothesis import given, strategies as st, settings

from photovote.utils.game_rules import (
    TallyResult, generate_room_code, shuffle_photos, partition_into_rounds, tally_votes
)


PHOTOS = ["photo-a", "photo-b", "photo-c"]


@given(votes=st.lists(st.sampled_from(PHOTOS), min_size=3, max_size=3))
@settings(max_examples=100)
def test_three_votes_tie_only_on_even_split(votes):
    """3 votes over 3 photos: tie iff every photo got exactly one vote"""
    result = tally_votes(votes)
    counts = Counter(votes)

    assert sum(result.counts.values()) == 3
    if len(counts) == 3:
        assert result.is_tie
        assert result.winning_photo_id is None
        assert set(result.tie_photos) == set(PHOTOS)
    else:
        winner, top = counts.most_common(1)[0]
        assert top >= 2
        assert not result.is_tie
        assert result.winning_photo_id == winner
        assert result.tie_photos == []


def test_majority_wins():
    result = tally_votes(["A", "A", "B"])
    assert result == TallyResult(winning_photo_id="A", is_tie=False, tie_photos=[], counts={"A": 2, "B": 1})


def test_distinct_votes_tie_in_first_vote_order():
    result = tally_votes(["C", "A", "B"])
    assert result.is_tie
    assert result.tie_photos == ["C", "A", "B"]


def test_two_way_tie_with_two_families():
    result = tally_votes(["A", "B"])
    assert result.is_tie
    assert result.tie_photos == ["A", "B"]


def test_no_votes_raises():
    with pytest.raises(ValueError, match="투표가 없습니다."):
        tally_votes([])


@given(groups=st.integers(min_value=1, max_value=10))
def test_partition_multiple_of_three_covers_every_photo(groups):
    photos = [f"p{i}" for i in range(groups * 3)]
    rounds = partition_into_rounds(shuffle_photos(photos, random.Random(groups)))

    assert len(rounds) == groups
    assert all(len(r) == 3 and len(set(r)) == 3 for r in rounds)
    assert sorted(p for r in rounds for p in r) == sorted(photos)


@given(count=st.integers(min_value=0, max_value=30))
def test_partition_drops_remainder(count):
    photos = list(range(count))
    rounds = partition_into_rounds(photos)

    assert len(rounds) == count // 3
    assert all(len(r) == 3 for r in rounds)
    assert [p for r in rounds for p in r] == photos[:(count // 3) * 3]


def test_seven_photos_make_two_rounds():
    assert len(partition_into_rounds(list("abcdefg"))) == 2


def test_partition_rejects_non_positive_size():
    with pytest.raises(ValueError):
        partition_into_rounds([1, 2, 3], size=0)


@given(items=st.lists(st.integers(), max_size=40), seed=st.integers())
def test_shuffle_is_permutation_and_leaves_input(items, seed):
    original = list(items)
    shuffled = shuffle_photos(items, random.Random(seed))

    assert items == original
    assert sorted(shuffled) == sorted(original)


@given(seed=st.integers())
def test_room_code_is_numeric_with_four_to_six_digits(seed):
    code = generate_room_code(random.Random(seed))

    assert code.isdigit()
    assert 4 <= len(code) <= 6


class FixedRandom:
    """Deterministic stand-in returning fixed draws"""

    def randint(self, a, b):
        return 4

    def randrange(self, stop):
        return 42


def test_room_code_keeps_leading_zeros():
    assert generate_room_code(FixedRandom()) == "0042"
