"""Configuration settings for the daily word service."""
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)

# Delivery times are 24-hour, zero-padded HH:MM
DELIVERY_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///dailyword.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class BotSettings:
    """Telegram settings used for word notifications."""
    token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")


@dataclass
class SchedulerSettings:
    """Delivery scheduler settings."""
    batch_size: int = int(os.getenv("SCHEDULER_BATCH_SIZE", "50"))
    poll_interval: int = int(os.getenv("SCHEDULER_POLL_INTERVAL", "60"))  # seconds
    default_delivery_time: str = os.getenv("DEFAULT_DELIVERY_TIME", "09:00")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    # Deliver later today when a schedule is enabled instead of starting tomorrow
    same_day_delivery: bool = os.getenv("NOTIFICATION_SAME_DAY_DELIVERY", "false").lower() == "true"


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_bot_settings() -> BotSettings:
    """Get bot settings."""
    return BotSettings()


def get_scheduler_settings() -> SchedulerSettings:
    """Get scheduler settings."""
    return SchedulerSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    bot: BotSettings = field(default_factory=get_bot_settings)
    scheduler: SchedulerSettings = field(default_factory=get_scheduler_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.scheduler.batch_size < 1:
            raise ValueError("SCHEDULER_BATCH_SIZE must be positive")

        if self.scheduler.poll_interval < 1:
            raise ValueError("SCHEDULER_POLL_INTERVAL must be positive")

        if not DELIVERY_TIME_PATTERN.match(self.scheduler.default_delivery_time):
            raise ValueError("DEFAULT_DELIVERY_TIME must be in HH:MM format")

        try:
            ZoneInfo(self.scheduler.default_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"DEFAULT_TIMEZONE is not a known timezone: {self.scheduler.default_timezone}")

        if not 0 < self.monitoring.port < 65536:
            raise ValueError("METRICS_PORT must be a valid port number")


# Create global settings instance
settings = Settings()
settings.validate()
