"""User-visible notifications.

Rollbacks and failed explicit actions are reported to the user as
non-fatal toasts. The NotificationCenter is a bounded queue that the
presentation layer drains on each render; the engine only ever pushes.
"""

import itertools
import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, List, Optional

from pydantic import BaseModel, Field

from src.dealflow.board.models import DealId


logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notification(BaseModel):
    """A toast-style message for the user.

    Attributes:
        id: Sequence number, unique within one NotificationCenter.
        level: Severity shown to the user.
        message: Text shown to the user.
        deal_id: The deal the message is about, if any.
        is_read: Whether the user has seen the message.
        created_at: When the message was created (UTC).
    """

    id: int
    level: NotificationLevel
    message: str
    deal_id: Optional[DealId] = None
    is_read: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class NotificationCenter:
    """Bounded newest-last queue of notifications.

    When the queue is full the oldest notification is dropped.

    Example:
        >>> center = NotificationCenter(limit=10)
        >>> center.error("Failed to move deal", deal_id=7).level
        <NotificationLevel.ERROR: 'error'>
        >>> center.unread_count
        1
    """

    def __init__(self, limit: int = 50):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._items: Deque[Notification] = deque(maxlen=limit)
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._items)

    def push(
        self,
        level: NotificationLevel,
        message: str,
        deal_id: Optional[DealId] = None,
    ) -> Notification:
        notification = Notification(
            id=next(self._ids),
            level=level,
            message=message,
            deal_id=deal_id,
        )
        self._items.append(notification)
        return notification

    def info(self, message: str, deal_id: Optional[DealId] = None) -> Notification:
        return self.push(NotificationLevel.INFO, message, deal_id)

    def success(self, message: str, deal_id: Optional[DealId] = None) -> Notification:
        return self.push(NotificationLevel.SUCCESS, message, deal_id)

    def error(self, message: str, deal_id: Optional[DealId] = None) -> Notification:
        logger.warning(message, extra={"deal_id": deal_id})
        return self.push(NotificationLevel.ERROR, message, deal_id)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.is_read)

    def latest(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None

    def all(self) -> List[Notification]:
        return list(self._items)

    def mark_all_read(self) -> None:
        self._items = deque(
            (n.model_copy(update={"is_read": True}) for n in self._items),
            maxlen=self.limit,
        )

    def drain(self) -> List[Notification]:
        """Return all queued notifications and empty the queue."""
        items = list(self._items)
        self._items.clear()
        return items

    def clear(self) -> None:
        self._items.clear()
