# tests/test_ranks.py
import pytest

from uniportal.errors import ConfigurationError
from uniportal.models import RankTier, UserProgression
from uniportal.ranks import (
    RANK_TABLE, compute_level, compute_progress_fraction, describe_rank,
    get_level_title, resolve_current_tier, resolve_next_tier, validate_rank_table,
)

SMALL_TABLE = (RankTier("Rookie", 0), RankTier("Pro", 100), RankTier("Elite", 300))


def test_default_table_is_valid():
    validate_rank_table(RANK_TABLE)
    assert RANK_TABLE[0].min_xp == 0


def test_current_tier_never_above_xp():
    for xp in range(0, 12000, 37):
        tier = resolve_current_tier(xp)
        assert tier.min_xp <= xp
        nxt = resolve_next_tier(xp)
        if nxt is not None:
            assert nxt.min_xp > xp


def test_boundary_is_inclusive():
    for tier in RANK_TABLE:
        assert resolve_current_tier(tier.min_xp) == tier


def test_just_below_boundary():
    assert resolve_current_tier(99, SMALL_TABLE).name == "Rookie"
    assert resolve_current_tier(100, SMALL_TABLE).name == "Pro"


def test_gold_starts_at_1500():
    assert resolve_current_tier(1500).name == "Gold"
    assert resolve_current_tier(1499).name == "Silver"


def test_next_tier():
    assert resolve_next_tier(0, SMALL_TABLE).name == "Pro"
    assert resolve_next_tier(150, SMALL_TABLE).name == "Elite"


def test_max_rank_has_no_next_tier():
    top = RANK_TABLE[-1]
    assert resolve_next_tier(top.min_xp) is None
    assert resolve_next_tier(top.min_xp + 99999) is None
    assert compute_progress_fraction(top.min_xp + 5, top, None) == 100.0


def test_progress_zero_at_tier_start():
    assert compute_progress_fraction(100, SMALL_TABLE[1], SMALL_TABLE[2]) == 0.0


def test_progress_midpoint():
    assert compute_progress_fraction(200, SMALL_TABLE[1], SMALL_TABLE[2]) == 50.0


def test_progress_monotonic_within_band():
    current, nxt = SMALL_TABLE[1], SMALL_TABLE[2]
    values = [compute_progress_fraction(xp, current, nxt) for xp in range(100, 300)]
    assert values == sorted(values)
    assert values[-1] < 100.0
    assert values[-1] == pytest.approx(99.5)


def test_progress_clamped():
    current, nxt = SMALL_TABLE[1], SMALL_TABLE[2]
    assert compute_progress_fraction(50, current, nxt) == 0.0
    assert compute_progress_fraction(900, current, nxt) == 100.0


def test_empty_table_raises():
    with pytest.raises(ConfigurationError):
        resolve_current_tier(10, ())


def test_table_without_zero_floor_raises():
    with pytest.raises(ConfigurationError):
        resolve_current_tier(10, (RankTier("A", 5), RankTier("B", 50)))


def test_non_monotonic_table_raises():
    with pytest.raises(ConfigurationError):
        validate_rank_table((RankTier("A", 0), RankTier("B", 50), RankTier("C", 50)))
    with pytest.raises(ConfigurationError):
        validate_rank_table((RankTier("A", 0), RankTier("B", 50), RankTier("C", 20)))


def test_negative_xp_rejected():
    with pytest.raises(ValueError):
        resolve_current_tier(-1)


def test_describe_rank():
    status = describe_rank(UserProgression(user_id=1, total_xp=200), SMALL_TABLE)
    assert status.current.name == "Pro"
    assert status.next_tier.name == "Elite"
    assert status.progress == 50.0
    assert status.xp_to_next == 100


def test_compute_level_curve():
    assert compute_level(0).level == 1
    assert compute_level(99).level == 1
    assert compute_level(100).level == 2
    assert compute_level(399).level == 2
    assert compute_level(400).level == 3


def test_compute_level_progress():
    info = compute_level(250)  # level 2 spans 100..400
    assert info.level == 2
    assert info.progress == 50.0
    assert compute_level(100).progress == 0.0


def test_level_titles():
    assert get_level_title(1) == "Novice"
    assert get_level_title(5) == "Scholar"
    assert get_level_title(12) == "Vanguard"
    assert get_level_title(15) == "Legend"
    assert get_level_title(30) == "Grandmaster"
    assert compute_level(19600).title == "Legend"  # level 15
