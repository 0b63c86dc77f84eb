"""Services for delivering the daily word to users."""
import html
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session
from telegram import Bot
from telegram.error import BadRequest, Forbidden, TelegramError

from dailyword.models.base import utcnow
from dailyword.models.models import NotificationLog, WordPool
from dailyword.services.user_service import UserService
from dailyword.services.word_service import WordService

logger = logging.getLogger(__name__)

# Telegram error texts that mean the user can no longer be reached
BLOCKED_PATTERNS = [
    "bot was blocked by the user",
    "forbidden: bot was blocked",
    "forbidden: user is deactivated",
    "forbidden: bot can't send messages to bots",
    "chat not found",
    "user not found",
]


class NotificationDispatcher(Protocol):
    """Hand-off point for word notifications."""

    async def deliver(self, user_id: str, word_id: int, day: str) -> None:
        ...


class NotificationLogMixin:
    """Writes delivery attempts to the notification log table."""

    db: Session

    def log_notification(
        self,
        message: str,
        level: str = "INFO",
        category: str = "delivery",
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Persist a notification log entry."""
        self.db.add(
            NotificationLog(
                level=level,
                category=category,
                user_id=user_id,
                message=message,
                log_metadata=metadata,
                timestamp=utcnow(),
            )
        )
        self.db.commit()


class LogNotificationService(NotificationLogMixin):
    """Dispatcher used when no Telegram token is configured."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    async def deliver(self, user_id: str, word_id: int, day: str) -> None:
        """Record the delivery without sending anything."""
        logger.info("Word %d for %s ready for user %s (no transport configured)", word_id, day, user_id)
        self.log_notification(
            "Delivery recorded without transport",
            user_id=user_id,
            metadata={"word_id": word_id, "day": day},
        )


class TelegramNotificationService(NotificationLogMixin):
    """Sends the daily word through a Telegram bot."""

    def __init__(self, bot: Bot, db: Session):
        """Initialize the service with a Telegram bot instance and database session."""
        self.bot = bot
        self.db = db
        self.users = UserService(db)
        self.words = WordService(db)

    def get_word_message(self, word: WordPool, day: str) -> str:
        """Generate the notification text for a word."""
        return (
            f"📖 Word of the day for {day}\n\n"
            f"<b>{html.escape(word.word)}</b>\n\n"
            "Open the app to see its definition and examples."
        )

    async def deliver(self, user_id: str, word_id: int, day: str) -> None:
        """Send a word to a user. Failures are logged, never raised."""
        user = self.users.get_user(user_id)
        if not user or not user.telegram_id:
            logger.debug("User %s has no Telegram chat, skipping notification", user_id)
            return

        word = self.words.get_word(word_id)
        if not word:
            logger.error("Word %d not found, cannot notify user %s", word_id, user_id)
            return

        try:
            await self.bot.send_message(
                chat_id=user.telegram_id,
                text=self.get_word_message(word, day),
                parse_mode="HTML",
            )
            logger.info("Sent word %d for %s to user %s (chat %d)", word_id, day, user_id, user.telegram_id)
            self.log_notification(
                "Word sent",
                user_id=user_id,
                metadata={"word_id": word_id, "day": day},
            )

        except (Forbidden, BadRequest) as e:
            # Handle Telegram-specific errors that indicate blocked users
            logger.error("Failed to send word to user %s (chat %d): %s", user_id, user.telegram_id, str(e))
            self.log_notification(
                f"Send failed: {e}",
                level="ERROR",
                user_id=user_id,
                metadata={"word_id": word_id, "day": day},
            )
            if self._is_user_blocked_error(e):
                self._disable_schedule(user_id)
        except TelegramError as e:
            # Handle other Telegram errors (network issues, etc.)
            logger.error("Telegram error sending word to user %s: %s", user_id, str(e))
            self.log_notification(
                f"Telegram error: {e}",
                level="ERROR",
                user_id=user_id,
                metadata={"word_id": word_id, "day": day},
            )

    def _disable_schedule(self, user_id: str) -> None:
        self.users.set_notifications_enabled(user_id, False)
        logger.info("Disabled notifications for user %s - bot was blocked", user_id)
        self.log_notification(
            "Schedule disabled, bot was blocked",
            level="WARNING",
            category="schedule",
            user_id=user_id,
        )

    def _is_user_blocked_error(self, error: Exception) -> bool:
        """Check if the error indicates user blocked the bot."""
        error_str = str(error).lower()
        return any(pattern in error_str for pattern in BLOCKED_PATTERNS)
