import logging
from datetime import datetime, timedelta
from typing import Optional

from hndigest.storage.database import ItemStore

logger = logging.getLogger(__name__)


class RetentionPurgeJob:
    """Delete stored items older than the retention window."""

    def __init__(self, store: ItemStore):
        self.store = store

    def run(self, retention: timedelta, now: Optional[datetime] = None) -> int:
        logger.info(f"  Purging items first seen more than {retention.days} day(s) ago...")
        removed = self.store.purge(retention, now=now)
        logger.info(f"  Removed {removed} item{'s' if removed != 1 else ''}")
        return removed
