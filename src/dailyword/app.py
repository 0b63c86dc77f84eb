"""Main application entry point."""
import asyncio
import logging
import signal
from typing import Optional

from sqlalchemy.orm import Session
from telegram import Bot

from dailyword.config import settings
from dailyword.models.base import SessionLocal, init_db
from dailyword.monitoring import start_monitoring
from dailyword.services.notification_service import (
    LogNotificationService,
    NotificationDispatcher,
    TelegramNotificationService,
)
from dailyword.services.scheduler_service import SchedulerService
from dailyword.services.word_service import WordService


class DailyWordApp:
    """Main application class."""

    def __init__(self):
        """Initialize the application."""
        self.bot: Optional[Bot] = None
        self.scheduler: Optional[SchedulerService] = None
        self.running = False
        self.db: Optional[Session] = None
        self.logger = logging.getLogger(__name__)

    async def _create_dispatcher(self) -> NotificationDispatcher:
        """Use Telegram when a token is configured, otherwise only log deliveries."""
        if not settings.bot.token:
            self.logger.warning("TELEGRAM_BOT_TOKEN is not set, notifications will only be logged")
            return LogNotificationService(self.db)

        self.bot = Bot(settings.bot.token)
        await self.bot.initialize()
        self.logger.info("Telegram bot initialized")
        return TelegramNotificationService(self.bot, self.db)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            # Initialize database
            init_db()
            self.db = SessionLocal()
            self.logger.info("Database initialized")

            stats = WordService(self.db).get_pool_stats()
            self.logger.info(
                "Word pool: %d eligible of %d words, cycle %d (%d left)",
                stats["eligible_words"],
                stats["total"],
                stats["current_cycle"],
                stats["words_left_this_cycle"],
            )

            if settings.monitoring.enabled:
                start_monitoring(settings.monitoring.port)
                self.logger.info("Metrics exposed on port %d", settings.monitoring.port)

            dispatcher = await self._create_dispatcher()

            # Create scheduler service
            self.scheduler = SchedulerService(self.db, dispatcher)
            await self.scheduler.start()
            self.logger.info("Scheduler service started")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self._shutdown()
            raise

    async def stop(self) -> None:
        """Stop the application."""
        if not self.running:
            return

        try:
            await self._shutdown()
        finally:
            self.running = False

    async def _shutdown(self) -> None:
        """Release the scheduler, bot and database session."""
        # Stop scheduler service
        if self.scheduler:
            await self.scheduler.stop()
            self.scheduler = None
            self.logger.info("Scheduler service stopped")

        if self.bot:
            await self.bot.shutdown()
            self.bot = None
            self.logger.info("Telegram bot stopped")

        # Close database session
        if self.db:
            self.db.close()
            self.db = None
            self.logger.info("Database session closed")

    async def run(self) -> None:
        """Run until SIGINT or SIGTERM."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

        await self.start()
        try:
            await stop_event.wait()
            self.logger.info("Received exit signal, shutting down...")
        finally:
            await self.stop()
