"""Rank tiers, rank resolution and the level curve."""
import math
from typing import Optional, Sequence

from uniportal.errors import ConfigurationError
from uniportal.models import LevelInfo, RankStatus, RankTier, UserProgression

RANK_TABLE = (
    RankTier("Novice", 0, "slate"),
    RankTier("Bronze", 500, "dark_orange"),
    RankTier("Silver", 1000, "grey70"),
    RankTier("Gold", 1500, "gold1"),
    RankTier("Platinum", 3000, "cyan"),
    RankTier("Diamond", 5000, "blue"),
    RankTier("Grandmaster", 10000, "magenta"),
)

# (minimum level, title), highest first
LEVEL_TITLES = (
    (25, "Grandmaster"),
    (15, "Legend"),
    (10, "Vanguard"),
    (5, "Scholar"),
    (1, "Novice"),
)

XP_PER_LEVEL_UNIT = 100


def validate_rank_table(table: Sequence[RankTier]) -> None:
    """Raise ConfigurationError unless the table starts at 0 XP and strictly increases."""
    if not table:
        raise ConfigurationError("Rank table is empty")
    if table[0].min_xp != 0:
        raise ConfigurationError(
            f"Rank table must start at 0 XP, first tier '{table[0].name}' starts at {table[0].min_xp}"
        )
    for prev, tier in zip(table, table[1:]):
        if tier.min_xp <= prev.min_xp:
            raise ConfigurationError(
                f"Rank thresholds must strictly increase: '{tier.name}' ({tier.min_xp}) "
                f"follows '{prev.name}' ({prev.min_xp})"
            )


def _check_xp(total_xp: int) -> None:
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")


def resolve_current_tier(total_xp: int, table: Sequence[RankTier] = RANK_TABLE) -> RankTier:
    """Tier with the greatest threshold not above total_xp."""
    validate_rank_table(table)
    _check_xp(total_xp)
    current = table[0]
    for tier in table:
        if tier.min_xp > total_xp:
            break
        current = tier
    return current


def resolve_next_tier(total_xp: int, table: Sequence[RankTier] = RANK_TABLE) -> Optional[RankTier]:
    """Tier with the smallest threshold above total_xp, or None at max rank."""
    validate_rank_table(table)
    _check_xp(total_xp)
    for tier in table:
        if tier.min_xp > total_xp:
            return tier
    return None


def compute_progress_fraction(
    total_xp: int,
    current_tier: RankTier,
    next_tier: Optional[RankTier],
) -> float:
    """Percent of the way from current_tier to next_tier, clamped to [0, 100]."""
    if next_tier is None:
        return 100.0
    band = next_tier.min_xp - current_tier.min_xp
    if band <= 0:
        raise ConfigurationError(
            f"Tier '{next_tier.name}' does not sit above '{current_tier.name}'"
        )
    progress = (total_xp - current_tier.min_xp) / band * 100
    return min(max(progress, 0.0), 100.0)


def describe_rank(progression: UserProgression, table: Sequence[RankTier] = RANK_TABLE) -> RankStatus:
    current = resolve_current_tier(progression.total_xp, table)
    nxt = resolve_next_tier(progression.total_xp, table)
    return RankStatus(
        current=current,
        next_tier=nxt,
        progress=compute_progress_fraction(progression.total_xp, current, nxt),
        total_xp=progression.total_xp,
    )


def get_level_title(level: int) -> str:
    for min_level, title in LEVEL_TITLES:
        if level >= min_level:
            return title
    return LEVEL_TITLES[-1][1]


def compute_level(total_xp: int) -> LevelInfo:
    """Square-root level curve.

    Level n starts at (n - 1)^2 * 100 XP, so level 2 needs 100 XP,
    level 3 needs 400 XP, level 10 needs 8,100 XP.
    """
    _check_xp(total_xp)
    level = math.isqrt(total_xp // XP_PER_LEVEL_UNIT) + 1
    base = (level - 1) ** 2 * XP_PER_LEVEL_UNIT
    ceiling = level ** 2 * XP_PER_LEVEL_UNIT
    progress = (total_xp - base) / (ceiling - base) * 100
    return LevelInfo(
        level=level,
        progress=min(max(progress, 0.0), 100.0),
        title=get_level_title(level),
    )


# The built-in table is static configuration; fail at import if it is malformed.
validate_rank_table(RANK_TABLE)
