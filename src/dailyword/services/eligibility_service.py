"""Read-only view of which words may be delivered."""
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Query, Session

from dailyword.models.models import WordDetails, WordPool, WordUsageLog
from dailyword.models.selection_models import SELECTABLE_STATUSES, DifficultyBand
from dailyword.services.difficulty import band_filter


def eligibility_filter():
    """Enabled words whose enrichment has not failed."""
    return and_(
        WordPool.enabled.is_(True),
        or_(WordDetails.status.is_(None), WordDetails.status.in_(SELECTABLE_STATUSES)),
    )


class EligibilityService:
    """Point-in-time reads over the word pool and its enrichment status."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def eligible_words(self, *columns, band: Optional[DifficultyBand] = None) -> Query:
        """Query over selectable words, optionally restricted to a band."""
        query = (
            self.db.query(*(columns or (WordPool,)))
            .select_from(WordPool)
            .outerjoin(WordDetails, WordDetails.word_pool_id == WordPool.id)
            .filter(eligibility_filter())
        )
        if band is not None:
            query = query.filter(band_filter(WordPool.tier, band))
        return query

    def is_eligible(self, word_id: int) -> bool:
        """Check if a word may be delivered right now."""
        return (
            self.eligible_words(WordPool.id)
            .filter(WordPool.id == word_id)
            .first()
        ) is not None

    def count_eligible(self, band: Optional[DifficultyBand] = None) -> int:
        """Count selectable words, ignoring cycles."""
        return self.eligible_words(func.count(WordPool.id), band=band).scalar() or 0

    def count_available(self, cycle: int) -> int:
        """Count selectable words not yet used globally in ``cycle``."""
        return (
            self.eligible_words(func.count(WordPool.id))
            .outerjoin(
                WordUsageLog,
                and_(WordUsageLog.word_pool_id == WordPool.id, WordUsageLog.cycle == cycle),
            )
            .filter(WordUsageLog.id.is_(None))
            .scalar()
        ) or 0
