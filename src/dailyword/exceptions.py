"""
Application exceptions.

Every error raised by the selection engine and its collaborators inherits
from DailyWordError, which carries an advisory HTTP status code so that a
boundary layer can map it without knowing the concrete type.

Usage:
    from dailyword.exceptions import NoWordsForPreferencesError

    try:
        selection_service.get_daily_word_for_user(user_id, day, "easy")
    except NoWordsForPreferencesError as e:
        logger.info(f"Nothing left for {e.details['requested_difficulty']}")
"""
from typing import Any, Dict, Optional


class DailyWordError(Exception):
    """
    Base exception for all daily word errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (optional)
        status_code: HTTP status code a boundary layer should return
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Selection
# =============================================================================

class SelectionError(DailyWordError):
    """Base class for failures to pick a word."""


class PoolEmptyError(SelectionError):
    """
    Raised when no eligible word exists anywhere in the pool.

    Indicates an operational problem with the catalog (everything disabled
    or failed enrichment); it is not retried.
    """

    def __init__(self, message: str = "No words available in pool", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, status_code=503)


class SelectionInvariantError(SelectionError):
    """
    Raised when eligible words exist but none can be selected after the
    cycle was advanced. Signals a filtering bug or an unexpected race.
    """

    def __init__(
        self,
        message: str = "Unable to select word after cycle increment",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=details, status_code=500)


class NoWordsForPreferencesError(SelectionError):
    """
    Raised when every band in the fallback chain is exhausted for a user.

    This is an expected, displayable outcome ("try again later").
    """

    def __init__(self, requested_difficulty: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="No words available for selected preferences",
            details={"requested_difficulty": requested_difficulty, **(details or {})},
            status_code=409,
        )


# =============================================================================
# Validation
# =============================================================================

class InvalidDeliveryTimeError(DailyWordError, ValueError):
    """Raised for a delivery time that is not a valid HH:MM string."""

    def __init__(self, value: Any):
        super().__init__(
            message="Invalid delivery time",
            details={"delivery_time": value},
            status_code=400,
        )


class InvalidTimezoneError(DailyWordError, ValueError):
    """Raised for an unknown IANA timezone name."""

    def __init__(self, value: Any):
        super().__init__(
            message="Invalid timezone",
            details={"timezone": value},
            status_code=400,
        )


class InvalidDifficultyError(DailyWordError, ValueError):
    """Raised for a difficulty that is not one of the known bands."""

    def __init__(self, value: Any):
        super().__init__(
            message="Invalid difficulty",
            details={"difficulty": value},
            status_code=400,
        )


class InvalidDateKeyError(DailyWordError, ValueError):
    """Raised for a date that is not an ISO YYYY-MM-DD string."""

    def __init__(self, value: Any):
        super().__init__(
            message="Invalid date",
            details={"date": value},
            status_code=400,
        )
