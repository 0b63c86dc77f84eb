"""Main entry point for the daily word service."""
import asyncio
import logging

from dailyword.app import DailyWordApp
from dailyword.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the service."""
    setup_logging("Starting dailyword ...")
    try:
        asyncio.run(DailyWordApp().run())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
