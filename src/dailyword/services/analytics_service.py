"""Service for recording analytics events."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from dailyword.models.base import utcnow
from dailyword.models.models import AnalyticsEvent

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Persists product analytics events."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def record_event(
        self,
        name: str,
        user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AnalyticsEvent:
        """Record an event for a user."""
        event = AnalyticsEvent(
            event_name=name,
            user_id=user_id,
            event_metadata=metadata or None,
            timestamp=utcnow(),
        )
        self.db.add(event)
        self.db.commit()
        logger.debug("Recorded event %s for user %s", name, user_id)
        return event

    def recent_events(
        self,
        user_id: str,
        name: Optional[str] = None,
        limit: int = 50,
    ) -> List[AnalyticsEvent]:
        """Get the latest events of a user, newest first."""
        query = self.db.query(AnalyticsEvent).filter(AnalyticsEvent.user_id == user_id)
        if name is not None:
            query = query.filter(AnalyticsEvent.event_name == name)
        return query.order_by(AnalyticsEvent.timestamp.desc(), AnalyticsEvent.id.desc()).limit(limit).all()
