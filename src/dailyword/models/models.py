"""Database models for the daily word service."""
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship

from dailyword.models.base import Base, TimestampMixin, utcnow

BAND_CHECK = "difficulty_band IN ('easy', 'balanced', 'advanced')"


class WordPool(Base):
    """Candidate word owned by the catalog."""

    __tablename__ = "word_pool"

    id = Column(Integer, primary_key=True)
    word = Column(String, unique=True, nullable=False, index=True)
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    tier = Column(Integer, nullable=True)  # lower = easier
    source = Column(String, default="scowl")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    details = relationship("WordDetails", back_populates="word", uselist=False)


class WordDetails(Base):
    """Enrichment status of a word; a missing row means pending."""

    __tablename__ = "word_details"

    word_pool_id = Column(Integer, ForeignKey("word_pool.id"), primary_key=True)
    status = Column(String, nullable=False, default="pending", index=True)
    error = Column(String, nullable=True)
    fetched_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    word = relationship("WordPool", back_populates="details")


class WordCycleState(Base):
    """Singleton row holding the global cycle."""

    __tablename__ = "word_cycle_state"
    __table_args__ = (CheckConstraint("id = 1", name="ck_word_cycle_state_singleton"),)

    id = Column(Integer, primary_key=True)
    current_cycle = Column(Integer, nullable=False, default=1)


@event.listens_for(WordCycleState.__table__, "after_create")
def seed_word_cycle_state(target, connection, **kw):
    """Start the global cycle at 1."""
    connection.execute(target.insert().values(id=1, current_cycle=1))


class WordUsageLog(Base):
    """Words used by the global selection, per cycle."""

    __tablename__ = "word_usage_log"
    __table_args__ = (UniqueConstraint("word_pool_id", "cycle", name="uq_word_usage_word_cycle"),)

    id = Column(Integer, primary_key=True)
    word_pool_id = Column(Integer, ForeignKey("word_pool.id"), nullable=False)
    used_on = Column(String, nullable=False)
    cycle = Column(Integer, nullable=False, default=1, index=True)


class DailyWord(Base):
    """Global word assignment, one per calendar day."""

    __tablename__ = "daily_words"

    day = Column(String, primary_key=True)  # YYYY-MM-DD
    word_pool_id = Column(Integer, ForeignKey("word_pool.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    word = relationship("WordPool")


class UserWordCycleState(Base):
    """Current cycle per user and difficulty band."""

    __tablename__ = "user_word_cycle_state"
    __table_args__ = (CheckConstraint(BAND_CHECK, name="ck_user_word_cycle_state_band"),)

    user_id = Column(String, primary_key=True)
    difficulty_band = Column(String, primary_key=True)
    current_cycle = Column(Integer, nullable=False, default=1)


class UserWordUsageLog(Base):
    """Words used by a user within a band cycle."""

    __tablename__ = "user_word_usage_log"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "word_pool_id", "difficulty_band", "cycle",
            name="uq_user_word_usage",
        ),
        CheckConstraint(BAND_CHECK, name="ck_user_word_usage_band"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    word_pool_id = Column(Integer, ForeignKey("word_pool.id"), nullable=False)
    difficulty_band = Column(String, nullable=False)
    cycle = Column(Integer, nullable=False)
    used_on = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class UserWord(Base):
    """Word delivered to a user on a day."""

    __tablename__ = "user_words"
    __table_args__ = (UniqueConstraint("user_id", "delivered_on", name="uq_user_words_user_date"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    word_pool_id = Column(Integer, ForeignKey("word_pool.id"), nullable=False)
    delivered_on = Column(String, nullable=False)  # YYYY-MM-DD in the user's timezone
    delivered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    requested_difficulty = Column(String, nullable=True)
    effective_difficulty = Column(String, nullable=True)
    viewed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    word = relationship("WordPool")


class User(Base, TimestampMixin):
    """User known to the service."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True)
    username = Column(String, nullable=True)
    timezone = Column(String, nullable=False, default="UTC")
    difficulty = Column(String, nullable=True)  # None = shared daily word

    # Relationships
    schedule = relationship("NotificationSchedule", back_populates="user", uselist=False)


class NotificationSchedule(Base):
    """Daily delivery schedule of a user."""

    __tablename__ = "notification_schedules"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    delivery_time = Column(String, nullable=False)  # HH:MM local
    timezone = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=False, index=True)
    next_delivery_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="schedule")


class AnalyticsEvent(Base):
    """Product analytics event."""

    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True)
    event_name = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    event_metadata = Column("metadata_json", JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class NotificationLog(Base):
    """Notification delivery log."""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True)
    level = Column(String, nullable=False)  # INFO, WARNING, ERROR
    category = Column(String, nullable=False, index=True)  # e.g., "delivery", "schedule"
    user_id = Column(String, nullable=True, index=True)
    message = Column(String, nullable=False)
    log_metadata = Column("metadata_json", JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
