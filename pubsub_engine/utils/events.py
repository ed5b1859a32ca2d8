"""
In-process event emitter used as the metrics and lifecycle channel.

Scenario runs emit ``started``; the message publisher emits ``counter`` and
``histogram`` events which a MetricsCollector (or any other listener)
aggregates.
"""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

COUNTER_EVENT = "counter"
HISTOGRAM_EVENT = "histogram"
STARTED_EVENT = "started"


class EventEmitter:
    """Minimal synchronous publish/subscribe hub"""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._lock = threading.Lock()

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]:
        """Register a listener; returns it so it can be removed later"""
        with self._lock:
            self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Callable[..., Any]):
        with self._lock:
            if listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener registered for ``event`` with ``args``.

        A failing listener is logged and does not stop delivery to the
        remaining listeners or propagate into the emitting step.

        Returns:
            bool: True if at least one listener was registered
        """
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Listener for '{event}' failed: {e}")

        return bool(listeners)
