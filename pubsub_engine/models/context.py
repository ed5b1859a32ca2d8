"""
Execution context threaded through one scenario run
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds"""
    return time.time() * 1000.0


@dataclass
class ExecutionContext:
    """
    Mutable state owned by one in-flight scenario run.

    ``vars`` holds template variables, ``start_time`` is the epoch-millisecond
    marker publish latency is measured from, and ``publisher`` is the topic
    handle acquired during scenario setup.
    """
    vars: Dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=now_ms)
    publisher: Optional[Any] = None
    scenario_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def template_scope(self) -> Dict[str, Any]:
        """Variables visible to message templates"""
        scope = {
            '$uuid': str(uuid.uuid4()),
            '$startTime': self.start_time,
            '$scenarioId': self.scenario_id,
        }
        scope.update(self.vars)
        return scope
