"""Service for managing no-repeat cycles."""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from dailyword.models.base import insert_or_ignore
from dailyword.models.models import UserWordCycleState, WordCycleState
from dailyword.models.selection_models import DifficultyBand
from dailyword import monitoring

logger = logging.getLogger(__name__)

GLOBAL_CYCLE_ID = 1
INITIAL_CYCLE = 1


class CycleService:
    """Reads and advances the global and per-user cycle counters.

    Counters are advanced with a single ``SET current_cycle = current_cycle + 1``
    statement and without any compare-and-swap: two callers exhausting the
    same scope at once may both advance it. Cycle numbers only scope the
    usage logs, so a skipped number is harmless.
    """

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_global_cycle(self) -> int:
        """Get the current global cycle."""
        current = (
            self.db.query(WordCycleState.current_cycle)
            .filter(WordCycleState.id == GLOBAL_CYCLE_ID)
            .scalar()
        )
        return int(current) if current is not None else INITIAL_CYCLE

    def increment_global_cycle(self) -> int:
        """Advance the global cycle and return the new value."""
        insert_or_ignore(self.db, WordCycleState, id=GLOBAL_CYCLE_ID, current_cycle=INITIAL_CYCLE)
        self.db.execute(
            update(WordCycleState)
            .where(WordCycleState.id == GLOBAL_CYCLE_ID)
            .values(current_cycle=WordCycleState.current_cycle + 1)
        )
        self.db.commit()

        cycle = self.get_global_cycle()
        monitoring.cycle_advances.labels(scope="global").inc()
        logger.info("Global word cycle advanced to %d", cycle)
        return cycle

    def get_user_cycle(self, user_id: str, band: DifficultyBand) -> int:
        """Get a user's current cycle for a difficulty band."""
        current = (
            self.db.query(UserWordCycleState.current_cycle)
            .filter(
                UserWordCycleState.user_id == user_id,
                UserWordCycleState.difficulty_band == band.value,
            )
            .scalar()
        )
        return int(current) if current is not None else INITIAL_CYCLE

    def increment_user_cycle(self, user_id: str, band: DifficultyBand) -> int:
        """Advance a user's cycle for a band and return the new value."""
        insert_or_ignore(
            self.db,
            UserWordCycleState,
            user_id=user_id,
            difficulty_band=band.value,
            current_cycle=INITIAL_CYCLE,
        )
        self.db.execute(
            update(UserWordCycleState)
            .where(
                UserWordCycleState.user_id == user_id,
                UserWordCycleState.difficulty_band == band.value,
            )
            .values(current_cycle=UserWordCycleState.current_cycle + 1)
        )
        self.db.commit()

        cycle = self.get_user_cycle(user_id, band)
        monitoring.cycle_advances.labels(scope="user").inc()
        logger.info("Word cycle for user %s (%s) advanced to %d", user_id, band.value, cycle)
        return cycle
