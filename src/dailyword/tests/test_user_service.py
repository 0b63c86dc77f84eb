"""Tests for user service."""
from datetime import datetime, UTC

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from dailyword.exceptions import InvalidDeliveryTimeError, InvalidDifficultyError, InvalidTimezoneError
from dailyword.config import settings
from dailyword.models.base import as_utc
from dailyword.models.models import AnalyticsEvent, NotificationSchedule, UserWord
from dailyword.models.selection_models import DifficultyBand
from dailyword.services.analytics_service import AnalyticsService
from dailyword.services.user_service import UserService

fake = Faker()


@pytest.fixture
def user_service(db: Session) -> UserService:
    """Create a user service instance."""
    return UserService(db)


def events(db: Session, user_id: str, name: str):
    return db.query(AnalyticsEvent).filter(
        AnalyticsEvent.user_id == user_id,
        AnalyticsEvent.event_name == name,
    ).all()


def test_get_or_create_user(user_service: UserService, user_id: str, db: Session) -> None:
    """Test creating a user with a disabled default schedule."""
    user = user_service.get_or_create_user(user_id, timezone="Europe/Kyiv", username="reader")

    assert user.id == user_id
    assert user.timezone == "Europe/Kyiv"
    assert user.difficulty is None
    assert user.schedule is not None
    assert user.schedule.enabled is False
    assert user.schedule.delivery_time == "09:00"
    assert user.schedule.timezone == "Europe/Kyiv"

    # Second call returns the same user
    assert user_service.get_or_create_user(user_id, timezone="UTC").timezone == "Europe/Kyiv"
    assert db.query(NotificationSchedule).count() == 1


def test_get_or_create_user_defaults(user_service: UserService, user_id: str) -> None:
    """Test the configured default timezone."""
    user = user_service.get_or_create_user(user_id, difficulty="advanced")
    assert user.timezone == "UTC"
    assert user.difficulty == "advanced"


def test_get_or_create_user_validates(user_service: UserService, user_id: str) -> None:
    """Test that bad preferences are rejected before the user is created."""
    with pytest.raises(InvalidTimezoneError):
        user_service.get_or_create_user(user_id, timezone="Not/AZone")
    with pytest.raises(InvalidDifficultyError):
        user_service.get_or_create_user(user_id, difficulty="hard")
    assert user_service.get_user(user_id) is None


def test_update_difficulty_records_change(user_service: UserService, user_id: str, db: Session) -> None:
    """Test difficulty changes and their analytics events."""
    user_service.get_or_create_user(user_id)

    user = user_service.update_difficulty(user_id, "easy")
    assert user.difficulty == "easy"

    user_service.update_difficulty(user_id, DifficultyBand.ADVANCED)
    user_service.update_difficulty(user_id, "advanced")
    user_service.update_difficulty(user_id, None)
    assert user_service.get_user(user_id).difficulty is None

    recorded = events(db, user_id, "preferences_difficulty_changed")
    assert [event.event_metadata for event in recorded] == [
        {"previous_difficulty": "none", "next_difficulty": "easy"},
        {"previous_difficulty": "easy", "next_difficulty": "advanced"},
    ]


def test_update_unknown_user(user_service: UserService) -> None:
    """Test updating a user that does not exist."""
    with pytest.raises(ValueError, match="User not found"):
        user_service.update_difficulty(fake.uuid4(), "easy")


def test_upsert_schedule(user_service: UserService, user_id: str) -> None:
    """Test setting the delivery time of a user."""
    user_service.get_or_create_user(user_id, timezone="America/New_York")

    schedule = user_service.upsert_schedule(
        user_id,
        "07:30",
        now=datetime(2024, 7, 1, 12, 0, tzinfo=UTC),
    )

    assert schedule.enabled is True
    assert schedule.delivery_time == "07:30"
    assert schedule.timezone == "America/New_York"
    # 07:30 EDT on the next local day
    assert as_utc(schedule.next_delivery_at) == datetime(2024, 7, 2, 11, 30, tzinfo=UTC)


@pytest.mark.parametrize("bad_time", ["9:00", "24:00", "12:60", "noon"])
def test_upsert_schedule_rejects_bad_time(user_service: UserService, user_id: str, bad_time: str) -> None:
    """Test that invalid delivery times leave the schedule untouched."""
    user_service.get_or_create_user(user_id)

    with pytest.raises(InvalidDeliveryTimeError):
        user_service.upsert_schedule(user_id, bad_time)

    schedule = user_service.get_user(user_id).schedule
    assert schedule.delivery_time == "09:00"
    assert schedule.enabled is False


def test_update_timezone_moves_schedule(user_service: UserService, user_id: str) -> None:
    """Test that a timezone change is applied to the schedule."""
    user_service.get_or_create_user(user_id)

    user = user_service.update_timezone(user_id, "Asia/Tokyo")

    assert user.timezone == "Asia/Tokyo"
    assert user.schedule.timezone == "Asia/Tokyo"
    with pytest.raises(InvalidTimezoneError):
        user_service.update_timezone(user_id, "Asia/Atlantis")


def test_set_notifications_enabled(user_service: UserService, user_id: str) -> None:
    """Test switching the schedule on and off."""
    user_service.get_or_create_user(user_id)

    assert user_service.set_notifications_enabled(user_id, True) is True
    assert user_service.get_user(user_id).schedule.enabled is True
    assert user_service.set_notifications_enabled(fake.uuid4(), True) is False


def test_get_today_word_uses_local_date(user_service: UserService, add_word, user_id: str, db: Session) -> None:
    """Test that today's word is keyed by the user's local date."""
    for i in range(5):
        add_word(200 + i)
    user_service.get_or_create_user(user_id, timezone="America/New_York")

    selection = user_service.get_today_word(user_id, now=datetime(2024, 3, 10, 2, 30, tzinfo=UTC))

    assert selection.day == "2024-03-09"
    assert selection.was_newly_created is True
    recorded = events(db, user_id, "word_delivered")
    assert len(recorded) == 1
    assert recorded[0].event_metadata == {"source": "app"}

    again = user_service.get_today_word(user_id, now=datetime(2024, 3, 10, 3, 0, tzinfo=UTC))
    assert again.word_id == selection.word_id
    assert again.was_newly_created is False
    assert len(events(db, user_id, "word_delivered")) == 1


def test_get_today_word_records_fallback(user_service: UserService, add_word, user_id: str, db: Session) -> None:
    """Test the fallback analytics event for personalized words."""
    add_word(300, tier=50)
    user_service.get_or_create_user(user_id, difficulty="easy")

    selection = user_service.get_today_word(user_id, now=datetime(2024, 2, 3, 12, 0, tzinfo=UTC))

    assert selection.effective_difficulty == DifficultyBand.BALANCED
    recorded = events(db, user_id, "word_selection_fallback_used")
    assert len(recorded) == 1
    assert recorded[0].event_metadata == {
        "source": "app",
        "requested_difficulty": "easy",
        "effective_difficulty": "balanced",
    }


def test_mark_word_viewed(user_service: UserService, add_word, user_id: str, db: Session) -> None:
    """Test that only the first view is recorded."""
    add_word(400)
    user_service.get_or_create_user(user_id)
    selection = user_service.get_today_word(user_id, now=datetime(2024, 2, 3, 12, 0, tzinfo=UTC))

    assert user_service.mark_word_viewed(user_id, selection.word_id) is True
    assert user_service.mark_word_viewed(user_id, selection.word_id) is False
    assert user_service.mark_word_viewed(user_id, 999) is False

    delivered = db.query(UserWord).filter(UserWord.user_id == user_id).one()
    assert delivered.viewed_at is not None
    assert len(events(db, user_id, "word_viewed")) == 1


def test_recent_events(db: Session, user_id: str) -> None:
    """Test reading back analytics events newest first."""
    analytics = AnalyticsService(db)
    analytics.record_event("word_delivered", user_id, {"source": "app"})
    analytics.record_event("word_viewed", user_id)

    recent = analytics.recent_events(user_id)
    assert [event.event_name for event in recent] == ["word_viewed", "word_delivered"]
    assert recent[0].event_metadata is None
    assert len(analytics.recent_events(user_id, name="word_viewed")) == 1


def test_enabled_schedule_starts_tomorrow(user_service: UserService, user_id: str) -> None:
    """Test that a newly enabled schedule skips a delivery time still ahead today."""
    user_service.get_or_create_user(user_id)

    schedule = user_service.upsert_schedule(user_id, "09:00", now=datetime(2024, 2, 3, 8, 0, tzinfo=UTC))

    assert as_utc(schedule.next_delivery_at) == datetime(2024, 2, 4, 9, 0, tzinfo=UTC)


def test_same_day_delivery(user_service: UserService, user_id: str, mocker) -> None:
    """Test delivering later today when same-day delivery is switched on."""
    mocker.patch.object(settings.scheduler, "same_day_delivery", True)
    user_service.get_or_create_user(user_id)

    schedule = user_service.upsert_schedule(user_id, "09:00", now=datetime(2024, 2, 3, 8, 0, tzinfo=UTC))

    assert as_utc(schedule.next_delivery_at) == datetime(2024, 2, 3, 9, 0, tzinfo=UTC)


def test_set_notifications_disabled_records_event(user_service: UserService, user_id: str, db: Session) -> None:
    """Test that switching an enabled schedule off is recorded once."""
    user_service.get_or_create_user(user_id)

    # Disabling an already disabled schedule changes nothing
    user_service.set_notifications_enabled(user_id, False)
    assert events(db, user_id, "notification_disabled") == []

    user_service.set_notifications_enabled(user_id, True)
    user_service.set_notifications_enabled(user_id, False)
    user_service.set_notifications_enabled(user_id, False)

    assert len(events(db, user_id, "notification_disabled")) == 1
    assert user_service.get_user(user_id).schedule.enabled is False


def test_upsert_schedule_disabled_records_event(user_service: UserService, user_id: str, db: Session) -> None:
    """Test the disable event when a schedule is replaced with a disabled one."""
    user_service.get_or_create_user(user_id)
    user_service.upsert_schedule(user_id, "08:00", enabled=True)

    schedule = user_service.upsert_schedule(user_id, "08:00", enabled=False)

    assert schedule.enabled is False
    assert len(events(db, user_id, "notification_disabled")) == 1
    assert events(db, user_id, "notification_disabled")[0].event_metadata is None


def test_get_history(user_service: UserService, add_word, user_id: str, db: Session) -> None:
    """Test reading back delivered words newest first."""
    add_word(600, text="first")
    add_word(601, text="second")
    add_word(602, text="third")
    user_service.get_or_create_user(user_id)
    other_user = fake.uuid4()

    selection = user_service.selection
    selection.assign_user_word(user_id, "2024-02-01", 600)
    selection.assign_user_word(user_id, "2024-02-02", 601)
    selection.assign_user_word(user_id, "2024-02-03", 602)
    selection.assign_user_word(other_user, "2024-02-03", 600)
    user_service.mark_word_viewed(user_id, 601)

    history = user_service.get_history(user_id)

    assert [entry["word"] for entry in history] == ["third", "second", "first"]
    assert [entry["delivered_on"] for entry in history] == ["2024-02-03", "2024-02-02", "2024-02-01"]
    assert history[1]["viewed_at"] is not None
    assert history[0]["viewed_at"] is None
    assert history[0]["delivered_at"] is not None
    assert [entry["word_id"] for entry in user_service.get_history(user_id, limit=2)] == [602, 601]
    assert user_service.get_history(fake.uuid4()) == []
