"""Value types shared by the selection services."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DifficultyBand(str, Enum):
    """Difficulty bands derived from a word's tier."""
    EASY = "easy"
    BALANCED = "balanced"
    ADVANCED = "advanced"


class EnrichmentStatus(str, Enum):
    """Status of a word's dictionary enrichment."""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    NOT_FOUND = "not_found"


# Statuses that keep a word selectable
SELECTABLE_STATUSES = (EnrichmentStatus.PENDING.value, EnrichmentStatus.READY.value)


@dataclass(frozen=True)
class GlobalWordSelection:
    """Result of resolving the shared word for a date."""
    word_id: int
    day: str
    was_newly_created: bool


@dataclass(frozen=True)
class UserWordSelection:
    """Result of resolving a user's word for a date."""
    word_id: int
    day: str
    was_newly_created: bool
    requested_difficulty: Optional[DifficultyBand]
    effective_difficulty: Optional[DifficultyBand]

    @property
    def used_fallback(self) -> bool:
        """True when the word came from a band other than the requested one."""
        return self.requested_difficulty != self.effective_difficulty
