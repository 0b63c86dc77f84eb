"""Service for delivering the daily word on each user's schedule."""
import asyncio
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from dailyword import monitoring
from dailyword.config import settings
from dailyword.exceptions import InvalidDeliveryTimeError, InvalidTimezoneError
from dailyword.models.base import as_utc, utcnow
from dailyword.models.models import NotificationSchedule
from dailyword.services.analytics_service import AnalyticsService
from dailyword.services.notification_service import NotificationDispatcher
from dailyword.services.selection_service import SelectionService
from dailyword.services.time_utils import (
    compute_following_delivery,
    get_local_date_key,
    get_zone,
    parse_delivery_time,
)

logger = logging.getLogger(__name__)


class SchedulerService:
    """Scans due notification schedules and delivers the shared daily word."""

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        batch_size: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ):
        """Initialize the service with a database session and a notification dispatcher."""
        self.db = db
        self.dispatcher = dispatcher
        self.batch_size = batch_size or settings.scheduler.batch_size
        self.poll_interval = poll_interval or settings.scheduler.poll_interval
        self.selection = SelectionService(db)
        self.analytics = AnalyticsService(db)
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False

    async def start(self) -> None:
        """Start the scheduler service."""
        if self.running:
            return

        self.running = True
        logger.info("Starting scheduler service...")
        self.tasks["daily_words"] = asyncio.create_task(self._run_daily_words())

    async def stop(self) -> None:
        """Stop the scheduler service."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping scheduler service...")

        # Cancel all tasks
        for task in self.tasks.values():
            task.cancel()

        # Wait for tasks to complete
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

    async def _run_daily_words(self) -> None:
        """Run the delivery task."""
        while self.running:
            try:
                await self.run_due_schedules()
                await asyncio.sleep(self.poll_interval)

            except asyncio.CancelledError:
                break
            except Exception as e:
                self.db.rollback()
                logger.exception("Error in daily word task: %s", str(e))
                await asyncio.sleep(60)  # Wait 1 minute before retrying

    def get_due_schedules(self, now: datetime) -> List[NotificationSchedule]:
        """Get the next batch of enabled schedules whose delivery time has passed."""
        return (
            self.db.query(NotificationSchedule)
            .filter(
                NotificationSchedule.enabled.is_(True),
                NotificationSchedule.next_delivery_at <= now,
            )
            .order_by(NotificationSchedule.next_delivery_at, NotificationSchedule.user_id)
            .limit(self.batch_size)
            .all()
        )

    async def run_due_schedules(self, now: Optional[datetime] = None) -> int:
        """Deliver words for every due schedule, batch by batch.

        Returns the number of schedules processed. A selection error aborts
        the run before the failing schedule is advanced, so it stays due.
        """
        now = as_utc(now) if now else utcnow()
        started = time.monotonic()
        processed = 0

        while True:
            schedules = self.get_due_schedules(now)
            if not schedules:
                break

            for schedule in schedules:
                try:
                    await self.process_schedule(schedule, now)
                except (InvalidDeliveryTimeError, InvalidTimezoneError) as e:
                    self.db.rollback()
                    self._disable_invalid_schedule(schedule, e)
                processed += 1

        monitoring.scheduler_run_duration.observe(time.monotonic() - started)
        if processed:
            logger.info("Processed %d due schedules", processed)
        return processed

    async def process_schedule(self, schedule: NotificationSchedule, now: datetime) -> bool:
        """Deliver the word for one schedule and move it to the next day.

        Returns True when a new delivery was made.
        """
        user_id = schedule.user_id
        parse_delivery_time(schedule.delivery_time)
        get_zone(schedule.timezone)

        scheduled_at = as_utc(schedule.next_delivery_at)
        day = get_local_date_key(scheduled_at, schedule.timezone)

        global_word = self.selection.get_daily_word(day)
        delivery = self.selection.assign_user_word(user_id, day, global_word.word_id)

        if delivery.was_newly_created:
            self.analytics.record_event("word_delivered", user_id, {"source": "scheduled"})
            await self.dispatcher.deliver(user_id, global_word.word_id, day)
            monitoring.deliveries.labels(status="sent").inc()
        else:
            logger.debug("User %s already has a word for %s, not notifying", user_id, day)
            monitoring.deliveries.labels(status="skipped").inc()

        schedule.next_delivery_at = compute_following_delivery(schedule.timezone, schedule.delivery_time, now)
        schedule.updated_at = utcnow()
        self.db.commit()

        monitoring.schedules_processed.inc()
        logger.debug("Next delivery for user %s at %s", user_id, schedule.next_delivery_at.isoformat())
        return delivery.was_newly_created

    def _disable_invalid_schedule(self, schedule: NotificationSchedule, error: Exception) -> None:
        """Switch off a schedule whose stored time or timezone cannot be used."""
        schedule.enabled = False
        schedule.updated_at = utcnow()
        self.db.commit()
        monitoring.deliveries.labels(status="failed").inc()
        logger.error(
            "Disabled schedule of user %s: %s (%s)",
            schedule.user_id,
            getattr(error, "message", str(error)),
            getattr(error, "details", {}),
        )
