"""Service for selecting the word of the day."""
import logging
from datetime import date
from typing import List, Optional, Tuple, Union

from sqlalchemy import BigInteger, and_, literal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dailyword import monitoring
from dailyword.exceptions import (
    NoWordsForPreferencesError,
    PoolEmptyError,
    SelectionInvariantError,
)
from dailyword.models.base import insert_or_ignore, utcnow
from dailyword.models.models import DailyWord, UserWord, UserWordUsageLog, WordPool, WordUsageLog
from dailyword.models.selection_models import DifficultyBand, GlobalWordSelection, UserWordSelection
from dailyword.services.cycle_service import CycleService
from dailyword.services.difficulty import get_fallback_chain, parse_difficulty
from dailyword.services.eligibility_service import EligibilityService
from dailyword.services.seed import MAX_INT32, global_seed_key, hash_key_to_seed, user_seed_key
from dailyword.services.time_utils import to_date_key

logger = logging.getLogger(__name__)


def seeded_order(seed: int):
    """ORDER BY expression for the seeded pseudo-shuffle of the pool."""
    return (WordPool.id * literal(seed, BigInteger)) % MAX_INT32


class SelectionService:
    """Assigns words to dates, globally and per user.

    Assignments are memoized in ``daily_words`` and ``user_words``. Concurrent
    callers for the same key may each compute a candidate; the unique key on
    the assignment table lets exactly one insert through and every other
    caller re-reads the winner's row.
    """

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.cycles = CycleService(db)
        self.eligibility = EligibilityService(db)

    # ------------------------------------------------------------------
    # Global word
    # ------------------------------------------------------------------

    def get_daily_assignment(self, day: str) -> Optional[DailyWord]:
        """Get the stored global assignment for a day."""
        return self.db.query(DailyWord).filter(DailyWord.day == day).first()

    def select_word_for_date(self, day: str, cycle: int) -> Optional[int]:
        """Pick the first eligible word unused in ``cycle`` in the day's seeded order."""
        seed = hash_key_to_seed(global_seed_key(day))
        row = (
            self.eligibility.eligible_words(WordPool.id)
            .outerjoin(
                WordUsageLog,
                and_(WordUsageLog.word_pool_id == WordPool.id, WordUsageLog.cycle == cycle),
            )
            .filter(WordUsageLog.id.is_(None))
            .order_by(seeded_order(seed), WordPool.id)
            .first()
        )
        return row.id if row else None

    def get_daily_word(self, day: Union[date, str]) -> GlobalWordSelection:
        """Get the shared word for a day, assigning one if needed."""
        day = to_date_key(day)

        existing = self.get_daily_assignment(day)
        if existing is not None:
            return GlobalWordSelection(word_id=existing.word_pool_id, day=day, was_newly_created=False)

        cycle = self.cycles.get_global_cycle()
        word_id = self.select_word_for_date(day, cycle)

        if word_id is None:
            if self.eligibility.count_eligible() == 0:
                monitoring.selection_errors.labels(error_type="pool_empty").inc()
                logger.warning("No eligible words in pool, cannot assign word for %s", day)
                raise PoolEmptyError(details={"day": day})

            # Every eligible word was used in this cycle
            cycle = self.cycles.increment_global_cycle()
            word_id = self.select_word_for_date(day, cycle)

            if word_id is None:
                monitoring.selection_errors.labels(error_type="invariant_violation").inc()
                logger.error(
                    "Selection invariant violated: eligible words exist but none selectable "
                    "for %s in fresh cycle %d",
                    day,
                    cycle,
                )
                raise SelectionInvariantError(details={"day": day, "cycle": cycle})

        try:
            created = insert_or_ignore(
                self.db, DailyWord, day=day, word_pool_id=word_id, created_at=utcnow()
            )
            if not created:
                self.db.rollback()
                return self._reread_daily_word(day)

            insert_or_ignore(self.db, WordUsageLog, word_pool_id=word_id, used_on=day, cycle=cycle)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        monitoring.assignments_created.labels(scope="global").inc()
        logger.info("Assigned word %d to %s (cycle %d)", word_id, day, cycle)
        return GlobalWordSelection(word_id=word_id, day=day, was_newly_created=True)

    def _reread_daily_word(self, day: str) -> GlobalWordSelection:
        winner = self.get_daily_assignment(day)
        if winner is None:
            raise SelectionInvariantError(
                message="Daily word insert was ignored but no assignment exists",
                details={"day": day},
            )
        monitoring.lost_races.labels(scope="global").inc()
        logger.debug("Lost race assigning %s, using word %d", day, winner.word_pool_id)
        return GlobalWordSelection(word_id=winner.word_pool_id, day=day, was_newly_created=False)

    # ------------------------------------------------------------------
    # Personalized word
    # ------------------------------------------------------------------

    def get_user_assignment(self, user_id: str, day: str) -> Optional[UserWord]:
        """Get the stored assignment of a user for a day."""
        return (
            self.db.query(UserWord)
            .filter(UserWord.user_id == user_id, UserWord.delivered_on == day)
            .first()
        )

    def select_word_for_user(
        self,
        user_id: str,
        day: str,
        band: DifficultyBand,
        cycle: int,
    ) -> Optional[int]:
        """Pick the first word of ``band`` the user has not seen in ``cycle``."""
        seed = hash_key_to_seed(user_seed_key(day, user_id, band.value))
        row = (
            self.eligibility.eligible_words(WordPool.id, band=band)
            .outerjoin(
                UserWordUsageLog,
                and_(
                    UserWordUsageLog.word_pool_id == WordPool.id,
                    UserWordUsageLog.user_id == user_id,
                    UserWordUsageLog.difficulty_band == band.value,
                    UserWordUsageLog.cycle == cycle,
                ),
            )
            .filter(UserWordUsageLog.id.is_(None))
            .order_by(seeded_order(seed), WordPool.id)
            .first()
        )
        return row.id if row else None

    def get_daily_word_for_user(
        self,
        user_id: str,
        day: Union[date, str],
        requested_difficulty: Union[DifficultyBand, str, None] = None,
    ) -> UserWordSelection:
        """Get a user's word for a day, assigning one if needed.

        Without a requested difficulty the user gets the shared daily word.
        Otherwise the word comes from the requested band or, when it is
        exhausted, from the next band of its fallback chain.
        """
        day = to_date_key(day)
        requested = parse_difficulty(requested_difficulty)

        existing = self.get_user_assignment(user_id, day)
        if existing is not None:
            return self._selection_from_row(existing, was_newly_created=False)

        if requested is None:
            shared = self.get_daily_word(day)
            return self.assign_user_word(user_id, day, shared.word_id)

        word_id, effective, cycle = self._select_with_fallback(user_id, day, requested)
        return self.assign_user_word(
            user_id,
            day,
            word_id,
            requested_difficulty=requested,
            effective_difficulty=effective,
            cycle=cycle,
        )

    def assign_user_word(
        self,
        user_id: str,
        day: str,
        word_id: int,
        requested_difficulty: Optional[DifficultyBand] = None,
        effective_difficulty: Optional[DifficultyBand] = None,
        cycle: Optional[int] = None,
    ) -> UserWordSelection:
        """Record a user's word for a day unless one is already recorded.

        The per-user usage row is written in the same transaction when the
        word came from a difficulty band. If another writer got there first,
        its row is returned with ``was_newly_created`` False.
        """
        try:
            created = insert_or_ignore(
                self.db,
                UserWord,
                user_id=user_id,
                word_pool_id=word_id,
                delivered_on=day,
                delivered_at=utcnow(),
                requested_difficulty=requested_difficulty.value if requested_difficulty else None,
                effective_difficulty=effective_difficulty.value if effective_difficulty else None,
            )
            if not created:
                self.db.rollback()
                return self._reread_user_word(user_id, day)

            if effective_difficulty is not None and cycle is not None:
                insert_or_ignore(
                    self.db,
                    UserWordUsageLog,
                    user_id=user_id,
                    word_pool_id=word_id,
                    difficulty_band=effective_difficulty.value,
                    cycle=cycle,
                    used_on=day,
                    created_at=utcnow(),
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        selection = UserWordSelection(
            word_id=word_id,
            day=day,
            was_newly_created=True,
            requested_difficulty=requested_difficulty,
            effective_difficulty=effective_difficulty,
        )
        monitoring.assignments_created.labels(scope="user").inc()
        if requested_difficulty is not None and selection.used_fallback:
            monitoring.fallback_used.labels(
                requested=requested_difficulty.value,
                effective=effective_difficulty.value,
            ).inc()
            logger.info(
                "User %s asked for %s words on %s, fell back to %s",
                user_id,
                requested_difficulty.value,
                day,
                effective_difficulty.value,
            )
        logger.info("Assigned word %d to user %s for %s", word_id, user_id, day)
        return selection

    def _select_with_fallback(
        self,
        user_id: str,
        day: str,
        requested: DifficultyBand,
    ) -> Tuple[int, DifficultyBand, int]:
        """Run at most three attempt passes over the fallback chain.

        Before the second pass the requested band's cycle is advanced, before
        the third the cycles of the remaining chain bands are advanced.
        """
        chain = get_fallback_chain(requested)
        advance_before_pass: List[List[DifficultyBand]] = [[], [requested], chain[1:]]

        for pass_number, bands_to_advance in enumerate(advance_before_pass, start=1):
            for band in bands_to_advance:
                self.cycles.increment_user_cycle(user_id, band)

            found = self._attempt_pass(user_id, day, chain)
            if found is not None:
                return found
            logger.debug("Pass %d found no word for user %s on %s", pass_number, user_id, day)

        monitoring.selection_errors.labels(error_type="no_words_for_preferences").inc()
        logger.info("No %s words left for user %s on %s", requested.value, user_id, day)
        raise NoWordsForPreferencesError(requested.value, details={"user_id": user_id, "day": day})

    def _attempt_pass(
        self,
        user_id: str,
        day: str,
        chain: List[DifficultyBand],
    ) -> Optional[Tuple[int, DifficultyBand, int]]:
        for band in chain:
            cycle = self.cycles.get_user_cycle(user_id, band)
            word_id = self.select_word_for_user(user_id, day, band, cycle)
            logger.debug(
                "User %s band %s cycle %d on %s: %s",
                user_id,
                band.value,
                cycle,
                day,
                word_id if word_id is not None else "exhausted",
            )
            if word_id is not None:
                return word_id, band, cycle
        return None

    def _reread_user_word(self, user_id: str, day: str) -> UserWordSelection:
        winner = self.get_user_assignment(user_id, day)
        if winner is None:
            raise SelectionInvariantError(
                message="User word insert was ignored but no assignment exists",
                details={"user_id": user_id, "day": day},
            )
        monitoring.lost_races.labels(scope="user").inc()
        logger.debug("Lost race assigning %s to user %s, using word %d", day, user_id, winner.word_pool_id)
        return self._selection_from_row(winner, was_newly_created=False)

    @staticmethod
    def _selection_from_row(row: UserWord, was_newly_created: bool) -> UserWordSelection:
        return UserWordSelection(
            word_id=row.word_pool_id,
            day=row.delivered_on,
            was_newly_created=was_newly_created,
            requested_difficulty=parse_difficulty(row.requested_difficulty),
            effective_difficulty=parse_difficulty(row.effective_difficulty),
        )
