"""
Bounded in-memory histories shared between foreground runs and the monitor.

Appends are serialized with an asyncio.Lock; readers take a snapshot copy
so concurrent eviction of old entries never invalidates what they iterate.
"""

import asyncio
from collections import deque
from typing import Deque, Generic, Iterable, List, Optional, TypeVar

from loguru import logger

from perfgate.core.models import Alert

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Append-only history that evicts the oldest entry once `limit` is reached."""

    def __init__(self, limit: int, name: str = "history"):
        if limit < 1:
            raise ValueError(f"{name} limit must be >= 1, got {limit}")
        self.limit = limit
        self.name = name
        self._items: Deque[T] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    async def append(self, item: T) -> None:
        async with self._lock:
            self._items.append(item)

    async def extend(self, items: Iterable[T]) -> None:
        async with self._lock:
            self._items.extend(items)

    def snapshot(self) -> List[T]:
        return list(self._items)

    def last(self, n: int) -> List[T]:
        if n <= 0:
            return []
        items = self.snapshot()
        return items[-n:]

    def latest(self) -> Optional[T]:
        items = self.last(1)
        return items[0] if items else None

    async def clear(self) -> None:
        async with self._lock:
            self._items.clear()
        logger.debug(f"{self.name} cleared")

    def __len__(self) -> int:
        return len(self._items)


class AlertLog(BoundedHistory[Alert]):
    """Bounded alert list; the resolved flag is the only thing callers may change."""

    def __init__(self, limit: int):
        super().__init__(limit, name="alerts")

    def get(self, alert_id: str) -> Optional[Alert]:
        for alert in self.snapshot():
            if alert.alert_id == alert_id:
                return alert
        return None

    def resolve(self, alert_id: str) -> Optional[Alert]:
        alert = self.get(alert_id)
        if alert is not None:
            alert.resolve()
            logger.info(f"Alert {alert_id} resolved")
        return alert

    def active(self) -> List[Alert]:
        return [a for a in self.snapshot() if not a.resolved]
