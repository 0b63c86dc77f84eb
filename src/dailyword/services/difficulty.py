"""Difficulty band classification and fallback rules."""
from typing import List, Optional, Union

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from dailyword.exceptions import InvalidDifficultyError
from dailyword.models.selection_models import DifficultyBand

# Tier thresholds: tier <= EASY_MAX_TIER is easy, tier <= BALANCED_MAX_TIER
# (or no tier) is balanced, anything above is advanced.
EASY_MAX_TIER = 35
BALANCED_MAX_TIER = 60

FALLBACK_CHAINS = {
    DifficultyBand.EASY: [DifficultyBand.EASY, DifficultyBand.BALANCED],
    DifficultyBand.BALANCED: [DifficultyBand.BALANCED, DifficultyBand.EASY, DifficultyBand.ADVANCED],
    DifficultyBand.ADVANCED: [DifficultyBand.ADVANCED, DifficultyBand.BALANCED],
}


def classify_tier(tier: Optional[int]) -> DifficultyBand:
    """Classify a nullable tier into a difficulty band."""
    if tier is None:
        return DifficultyBand.BALANCED
    if tier <= EASY_MAX_TIER:
        return DifficultyBand.EASY
    if tier <= BALANCED_MAX_TIER:
        return DifficultyBand.BALANCED
    return DifficultyBand.ADVANCED


def band_filter(tier_column: ColumnElement, band: DifficultyBand) -> ColumnElement:
    """SQL predicate selecting the rows classify_tier puts in ``band``."""
    if band == DifficultyBand.EASY:
        return and_(tier_column.is_not(None), tier_column <= EASY_MAX_TIER)
    if band == DifficultyBand.BALANCED:
        return or_(
            tier_column.is_(None),
            and_(tier_column > EASY_MAX_TIER, tier_column <= BALANCED_MAX_TIER),
        )
    return and_(tier_column.is_not(None), tier_column > BALANCED_MAX_TIER)


def parse_difficulty(value: Union[str, DifficultyBand, None]) -> Optional[DifficultyBand]:
    """Parse a requested difficulty; None and empty strings mean no preference."""
    if value is None or value == "":
        return None
    if isinstance(value, DifficultyBand):
        return value
    try:
        return DifficultyBand(str(value).strip().lower())
    except ValueError:
        raise InvalidDifficultyError(value)


def get_fallback_chain(band: DifficultyBand) -> List[DifficultyBand]:
    """Bands to try, in order, for a requested band."""
    return list(FALLBACK_CHAINS[band])
