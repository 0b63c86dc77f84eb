"""Service for reading the word pool."""
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dailyword.models.models import WordDetails, WordPool, WordUsageLog
from dailyword.models.selection_models import EnrichmentStatus
from dailyword.services.cycle_service import CycleService
from dailyword.services.eligibility_service import EligibilityService


class WordService:
    """Read access to words and pool statistics."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.cycles = CycleService(db)
        self.eligibility = EligibilityService(db)

    def get_word(self, word_id: int) -> Optional[WordPool]:
        """Get a word by its ID."""
        return self.db.query(WordPool).filter(WordPool.id == word_id).first()

    def get_word_by_text(self, text: str) -> Optional[WordPool]:
        """Get a word by its text."""
        return self.db.query(WordPool).filter(WordPool.word.ilike(text)).first()

    def get_word_count(self) -> int:
        """Get the count of words in the pool."""
        return self.db.query(WordPool).count()

    def get_pool_stats(self) -> Dict[str, Any]:
        """Summarize the pool by enrichment status and cycle usage."""
        total = self.get_word_count()
        enabled = self.db.query(WordPool).filter(WordPool.enabled.is_(True)).count()

        status_counts = dict(
            self.db.query(WordDetails.status, func.count(WordDetails.word_pool_id))
            .group_by(WordDetails.status)
            .all()
        )
        # Words without a details row have not been enriched yet
        without_details = (
            self.db.query(WordPool)
            .outerjoin(WordDetails, WordDetails.word_pool_id == WordPool.id)
            .filter(WordDetails.word_pool_id.is_(None))
            .count()
        )

        cycle = self.cycles.get_global_cycle()
        used_this_cycle = self.db.query(WordUsageLog).filter(WordUsageLog.cycle == cycle).count()

        return {
            "total": total,
            "pending": status_counts.get(EnrichmentStatus.PENDING.value, 0) + without_details,
            "ready": status_counts.get(EnrichmentStatus.READY.value, 0),
            "failed": status_counts.get(EnrichmentStatus.FAILED.value, 0),
            "not_found": status_counts.get(EnrichmentStatus.NOT_FOUND.value, 0),
            "enabled_words": enabled,
            "disabled_words": total - enabled,
            "eligible_words": self.eligibility.count_eligible(),
            "current_cycle": cycle,
            "words_used_this_cycle": used_this_cycle,
            "words_left_this_cycle": self.eligibility.count_available(cycle),
        }
