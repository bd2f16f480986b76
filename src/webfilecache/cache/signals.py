"""Minimal observer primitive used for ready events and timer ticks."""

import logging
import threading
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """A thread-safe list of callbacks invoked on emit().

    Exceptions raised by a callback are logged and do not prevent the
    remaining callbacks from running.

    Examples:
        >>> ready = Signal()
        >>> ready.connect(print)
        >>> ready.emit("map.png")
        map.png
    """

    def __init__(self):
        self._slots: List[Callable[..., Any]] = []
        self._lock = threading.Lock()

    def connect(self, slot: Callable[..., Any]) -> None:
        with self._lock:
            if slot not in self._slots:
                self._slots.append(slot)

    def disconnect(self, slot: Callable[..., Any]) -> None:
        with self._lock:
            if slot in self._slots:
                self._slots.remove(slot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def emit(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            slots = list(self._slots)
        for slot in slots:
            try:
                slot(*args, **kwargs)
            except Exception as e:
                logger.error(f"Signal handler {slot!r} failed: {e}", exc_info=True)
