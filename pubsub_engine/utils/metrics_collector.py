"""
Metrics collection for published messages.

Aggregates the ``counter`` and ``histogram`` events emitted by scenario runs
into totals and latency summaries.
"""

import logging
import math
from collections import defaultdict, deque
from dataclasses import dataclass, asdict
from datetime import datetime
from threading import Lock
from typing import Dict, Any, Optional

from .events import EventEmitter, COUNTER_EVENT, HISTOGRAM_EVENT, STARTED_EVENT

logger = logging.getLogger(__name__)


@dataclass
class HistogramSummary:
    """Summary statistics for one histogram"""
    count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    p50: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None


def _percentile(sorted_values, percent: float) -> float:
    """Nearest-rank percentile of an already sorted sequence"""
    rank = max(1, math.ceil(percent / 100.0 * len(sorted_values)))
    return sorted_values[rank - 1]


class MetricsCollector:
    """
    Thread-safe collector for counters and histograms.

    Histograms keep at most ``max_samples`` recent samples per name; the
    sample count reported in summaries is the total ever recorded.
    """

    def __init__(self, max_samples: int = 10000):
        self.max_samples = max_samples
        self._lock = Lock()
        self._counters: Dict[str, float] = defaultdict(float)
        self._samples: Dict[str, deque] = defaultdict(lambda: deque(maxlen=self.max_samples))
        self._sample_counts: Dict[str, int] = defaultdict(int)
        self.scenarios_started = 0
        self.started_at = datetime.now().isoformat()

    def attach(self, events: EventEmitter) -> "MetricsCollector":
        """Subscribe to the metric events of an emitter"""
        events.on(COUNTER_EVENT, self.record_counter)
        events.on(HISTOGRAM_EVENT, self.record_histogram)
        events.on(STARTED_EVENT, self.record_started)
        return self

    def record_counter(self, name: str, value: float = 1):
        with self._lock:
            self._counters[name] += value

    def record_histogram(self, name: str, value: float):
        with self._lock:
            self._samples[name].append(float(value))
            self._sample_counts[name] += 1

    def record_started(self, *args):
        with self._lock:
            self.scenarios_started += 1

    def counter(self, name: str) -> float:
        with self._lock:
            return self._counters.get(name, 0)

    @property
    def counters(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._counters)

    def histogram_summary(self, name: str) -> HistogramSummary:
        """Compute summary statistics for one histogram"""
        with self._lock:
            values = sorted(self._samples.get(name, ()))
            total = self._sample_counts.get(name, 0)

        if not values:
            return HistogramSummary(count=total)

        return HistogramSummary(
            count=total,
            min=values[0],
            max=values[-1],
            mean=sum(values) / len(values),
            p50=_percentile(values, 50),
            p95=_percentile(values, 95),
            p99=_percentile(values, 99)
        )

    def snapshot(self) -> Dict[str, Any]:
        """All collected metrics as a JSON-serializable dictionary"""
        with self._lock:
            histogram_names = list(self._samples.keys())
            scenarios_started = self.scenarios_started
        return {
            'started_at': self.started_at,
            'scenarios_started': scenarios_started,
            'counters': self.counters,
            'histograms': {name: asdict(self.histogram_summary(name)) for name in histogram_names}
        }

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._samples.clear()
            self._sample_counts.clear()
            self.scenarios_started = 0
        logger.info("Metrics collector reset")
