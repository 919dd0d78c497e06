"""
Change notifier for resource-state changes.

Broadcasts "something changed in table X" events to in-process listeners
(the catalog cache) and to connected clients (WebSocket subscribers).

Events carry no row data. They are advisory cache invalidation only: whoever
receives one must re-run the availability query instead of patching local
state from the event, so a dropped event can never leave a client diverged.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from core.constants import CHANGE_EVENT_QUEUE_SIZE
from utils.datetime_utils import institution_now

logger = logging.getLogger(__name__)

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A row-changed signal for one table."""

    table: str
    event_type: str
    emitted_at: str = field(default_factory=lambda: institution_now().isoformat())

    def to_dict(self) -> Dict[str, str]:
        return {"table": self.table, "event_type": self.event_type, "emitted_at": self.emitted_at}


Listener = Callable[[ChangeEvent], None]


class Subscription:
    """
    Async subscription to one or more tables.

    Each subscription owns a bounded queue bound to the event loop it was
    created on; publishers on any thread hand events over with
    ``call_soon_threadsafe``.
    """

    def __init__(self, notifier: "ChangeNotifier", tables: Set[str], loop: asyncio.AbstractEventLoop):
        self._notifier = notifier
        self.tables = tables
        self.loop = loop
        self.queue: "asyncio.Queue[ChangeEvent]" = asyncio.Queue(maxsize=CHANGE_EVENT_QUEUE_SIZE)
        self.dropped = 0

    def _offer(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Subscriber is behind; it will still re-query on the next event it reads
            self.dropped += 1

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def close(self) -> None:
        self._notifier.unsubscribe(self)


class ChangeNotifier:
    """Thread-safe publish/subscribe channel keyed by table name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}
        self._subscriptions: List[Subscription] = []

    def add_listener(self, table: str, listener: Listener) -> None:
        """Register a synchronous in-process listener for a table."""
        with self._lock:
            self._listeners.setdefault(table, []).append(listener)

    def remove_listener(self, table: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(table, [])
            if listener in listeners:
                listeners.remove(listener)

    def subscribe(self, tables: Set[str], loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """
        Create an async subscription. Must be called from (or given) the
        event loop that will consume it.
        """
        subscription = Subscription(self, set(tables), loop or asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, table: str, event_type: str) -> ChangeEvent:
        """
        Fan an event out to every listener and subscriber of the table.

        Never raises and never blocks: a failing listener is logged and
        skipped, a closed loop or full queue drops the event.
        """
        event = ChangeEvent(table=table, event_type=event_type)
        with self._lock:
            listeners = list(self._listeners.get(table, []))
            targets: List[Tuple[Subscription, asyncio.AbstractEventLoop]] = [
                (s, s.loop) for s in self._subscriptions if table in s.tables
            ]

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.exception(f"Change listener failed for {table}/{event_type}: {e}")

        for subscription, loop in targets:
            try:
                loop.call_soon_threadsafe(subscription._offer, event)
            except RuntimeError:
                # Loop already closed; the subscriber is gone
                self.unsubscribe(subscription)

        logger.debug(f"Published {event_type} on {table} to {len(listeners)} listeners and {len(targets)} subscribers")
        return event

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


# Global singleton instance
change_notifier = ChangeNotifier()
