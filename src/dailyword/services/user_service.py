"""User service for managing users, preferences and today's word."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from dailyword.config import settings
from dailyword.models.base import utcnow
from dailyword.models.models import NotificationSchedule, User, UserWord, WordPool
from dailyword.models.selection_models import DifficultyBand, UserWordSelection
from dailyword.services.analytics_service import AnalyticsService
from dailyword.services.difficulty import parse_difficulty
from dailyword.services.selection_service import SelectionService
from dailyword.services.time_utils import (
    compute_following_delivery,
    compute_next_delivery_at,
    get_local_date_key,
    get_zone,
    parse_delivery_time,
)

# Configure logging
logger = logging.getLogger(__name__)


class UserService:
    """Service for managing user data and preferences."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.analytics = AnalyticsService(db)
        self.selection = SelectionService(db)

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        return self.db.query(User).filter(User.id == user_id).first()

    def get_or_create_user(
        self,
        user_id: str,
        timezone: Optional[str] = None,
        difficulty: Union[DifficultyBand, str, None] = None,
        telegram_id: Optional[int] = None,
        username: Optional[str] = None,
    ) -> User:
        """Get existing user or create a new one with a disabled schedule."""
        user = self.get_user(user_id)
        if user:
            return user

        timezone = timezone or settings.scheduler.default_timezone
        get_zone(timezone)
        band = parse_difficulty(difficulty)

        user = User(
            id=user_id,
            timezone=timezone,
            difficulty=band.value if band else None,
            telegram_id=telegram_id,
            username=username,
        )
        self.db.add(user)
        self.db.flush()
        self.db.add(
            NotificationSchedule(
                user_id=user_id,
                delivery_time=settings.scheduler.default_delivery_time,
                timezone=timezone,
                enabled=False,
                next_delivery_at=compute_next_delivery_at(
                    timezone, settings.scheduler.default_delivery_time, utcnow()
                ),
            )
        )
        self.db.commit()
        self.db.refresh(user)
        logger.info("Created user %s (timezone %s)", user_id, timezone)
        return user

    def update_difficulty(
        self,
        user_id: str,
        difficulty: Union[DifficultyBand, str, None],
    ) -> User:
        """Change the difficulty preference; None returns the user to the shared word."""
        user = self._require_user(user_id)
        band = parse_difficulty(difficulty)
        previous = user.difficulty
        user.difficulty = band.value if band else None
        self.db.commit()

        if band is not None and band.value != previous:
            self.analytics.record_event(
                "preferences_difficulty_changed",
                user_id,
                {"previous_difficulty": previous or "none", "next_difficulty": band.value},
            )
        return user

    def update_timezone(self, user_id: str, timezone: str) -> User:
        """Change the user's timezone, keeping the schedule in step."""
        get_zone(timezone)
        user = self._require_user(user_id)
        user.timezone = timezone
        if user.schedule:
            user.schedule.timezone = timezone
            user.schedule.next_delivery_at = compute_next_delivery_at(
                timezone, user.schedule.delivery_time, utcnow()
            )
        self.db.commit()
        return user

    def upsert_schedule(
        self,
        user_id: str,
        delivery_time: str,
        timezone: Optional[str] = None,
        enabled: bool = True,
        now: Optional[datetime] = None,
    ) -> NotificationSchedule:
        """Create or replace a user's delivery schedule.

        Raises InvalidDeliveryTimeError before anything is written.
        """
        parse_delivery_time(delivery_time)
        user = self._require_user(user_id)
        timezone = timezone or user.timezone
        next_delivery_at = self._initial_delivery_at(timezone, delivery_time, enabled, now or utcnow())

        schedule = user.schedule
        was_enabled = bool(schedule and schedule.enabled)
        if schedule is None:
            schedule = NotificationSchedule(user_id=user_id)
            self.db.add(schedule)
        schedule.delivery_time = delivery_time
        schedule.timezone = timezone
        schedule.enabled = enabled
        schedule.next_delivery_at = next_delivery_at
        self.db.commit()
        self.db.refresh(schedule)

        logger.info(
            "Schedule for user %s set to %s %s (enabled: %s, next: %s)",
            user_id,
            delivery_time,
            timezone,
            enabled,
            next_delivery_at.isoformat(),
        )
        if was_enabled and not enabled:
            self.analytics.record_event("notification_disabled", user_id)
        return schedule

    def set_notifications_enabled(self, user_id: str, enabled: bool) -> bool:
        """Enable or disable a user's schedule. Returns False without a schedule."""
        schedule = (
            self.db.query(NotificationSchedule)
            .filter(NotificationSchedule.user_id == user_id)
            .first()
        )
        if schedule is None:
            return False

        was_enabled = schedule.enabled
        schedule.enabled = enabled
        schedule.updated_at = utcnow()
        self.db.commit()

        if was_enabled and not enabled:
            self.analytics.record_event("notification_disabled", user_id)
        logger.info("Notifications for user %s %s", user_id, "enabled" if enabled else "disabled")
        return True

    def get_history(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get the words delivered to a user, newest first."""
        query = (
            self.db.query(UserWord, WordPool.word)
            .join(WordPool, WordPool.id == UserWord.word_pool_id)
            .filter(UserWord.user_id == user_id)
            .order_by(UserWord.delivered_at.desc(), UserWord.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)

        return [
            {
                "word_id": user_word.word_pool_id,
                "word": word,
                "delivered_on": user_word.delivered_on,
                "delivered_at": user_word.delivered_at,
                "viewed_at": user_word.viewed_at,
                "effective_difficulty": user_word.effective_difficulty,
            }
            for user_word, word in query.all()
        ]

    def get_today_word(self, user_id: str, now: Optional[datetime] = None) -> UserWordSelection:
        """Resolve the word for the user's current local day.

        Uses the stored difficulty preference and records delivery analytics
        the first time the word is assigned.
        """
        user = self._require_user(user_id)
        day = get_local_date_key(now or utcnow(), user.timezone)

        selection = self.selection.get_daily_word_for_user(user_id, day, user.difficulty)

        if selection.was_newly_created:
            self.analytics.record_event("word_delivered", user_id, {"source": "app"})
            if selection.used_fallback and selection.requested_difficulty and selection.effective_difficulty:
                self.analytics.record_event(
                    "word_selection_fallback_used",
                    user_id,
                    {
                        "source": "app",
                        "requested_difficulty": selection.requested_difficulty.value,
                        "effective_difficulty": selection.effective_difficulty.value,
                    },
                )
        return selection

    def mark_word_viewed(self, user_id: str, word_id: int) -> bool:
        """Mark a delivered word as viewed; only the first view counts."""
        result = self.db.execute(
            update(UserWord)
            .where(
                UserWord.user_id == user_id,
                UserWord.word_pool_id == word_id,
                UserWord.viewed_at.is_(None),
            )
            .values(viewed_at=utcnow())
        )
        self.db.commit()

        if result.rowcount > 0:
            self.analytics.record_event("word_viewed", user_id)
            return True
        return False

    def _require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise ValueError("User not found")
        return user

    @staticmethod
    def _initial_delivery_at(timezone: str, delivery_time: str, enabled: bool, now: datetime) -> datetime:
        """First delivery of a schedule; enabled schedules start tomorrow unless same-day delivery is on."""
        if enabled and not settings.scheduler.same_day_delivery:
            return compute_following_delivery(timezone, delivery_time, now)
        return compute_next_delivery_at(timezone, delivery_time, now)
