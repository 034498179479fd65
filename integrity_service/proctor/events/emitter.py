"""
Event Emitter - Delivers violations to local observers and the remote store

Local observers are called synchronously so the UI reflects a violation
before any I/O starts. Remote delivery is fire-and-forget: one task per
event, a short timeout, no retry. A failed delivery is logged and dropped.
"""

import asyncio
import logging
import threading
from collections import Counter, deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from ..utils.logging import log_delivery_failure
from .models import ViolationEvent

logger = logging.getLogger(__name__)

Observer = Callable[[ViolationEvent], Any]


class EventEmitter:
    """
    Fan-out point for emitted violations.

    Args:
        session_id: Session the events belong to
        sink: Object with `async send_event(session_id, event)`; None disables
              remote delivery
        recent_limit: Size of the recent-events list used for display
        max_workers: Threads used for delivery when no event loop is running
    """

    DEFAULT_RECENT_LIMIT = 5

    def __init__(
        self,
        session_id: str,
        sink: Optional[Any] = None,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        max_workers: int = 2
    ):
        self.session_id = session_id
        self.sink = sink
        self._lock = threading.Lock()
        self._observers: List[Observer] = []
        self._recent: Deque[ViolationEvent] = deque(maxlen=recent_limit)
        self._log: List[ViolationEvent] = []
        self._pending: Set[asyncio.Task] = set()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

        self.delivered_count = 0
        self.failed_count = 0

    def add_observer(self, observer: Observer):
        with self._lock:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    @property
    def recent_events(self) -> List[ViolationEvent]:
        with self._lock:
            return list(self._recent)

    @property
    def events(self) -> List[ViolationEvent]:
        with self._lock:
            return list(self._log)

    def counts_by_type(self) -> Dict[str, int]:
        with self._lock:
            return dict(Counter(event.type.value for event in self._log))

    def emit(self, event: ViolationEvent):
        """
        Deliver an event.

        Appends to the local lists, notifies observers in registration order,
        then schedules remote delivery without waiting for it.
        """
        with self._lock:
            if self._closed:
                logger.debug(f"Emitter closed, dropping {event.type.value}")
                return
            self._recent.append(event)
            self._log.append(event)
            observers = list(self._observers)

        for observer in observers:
            try:
                observer(event)
            except Exception as e:
                logger.warning(f"Observer {observer!r} failed for {event.type.value}: {e}")

        if self.sink is not None:
            self._spawn_delivery(event)

    def _spawn_delivery(self, event: ViolationEvent):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self._deliver(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        with self._lock:
            if self._closed:
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=f"event-sink-{self.session_id}"
                )
            self._executor.submit(asyncio.run, self._deliver(event))

    async def _deliver(self, event: ViolationEvent):
        try:
            await self.sink.send_event(self.session_id, event)
        except Exception as e:
            self.failed_count += 1
            log_delivery_failure(self.session_id, event.type.value, e)
            return
        self.delivered_count += 1

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    def close(self):
        """
        Stop accepting events. In-flight deliveries are neither awaited
        nor cancelled.
        """
        with self._lock:
            self._closed = True
            self._observers.clear()
            executor, self._executor = self._executor, None

        if executor is not None:
            executor.shutdown(wait=False)
