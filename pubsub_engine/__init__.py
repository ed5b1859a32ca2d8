"""
Pub/Sub load-test engine: compiles declarative scenarios into asyncio step
pipelines that publish templated messages to a Google Cloud Pub/Sub topic.
"""

from .models import ExecutionContext
from .services import PubSubEngine, Scenario, EngineHelpers
from .utils.events import EventEmitter
from .utils.metrics_collector import MetricsCollector

__version__ = "0.1.0"

__all__ = [
    'ExecutionContext',
    'PubSubEngine',
    'Scenario',
    'EngineHelpers',
    'EventEmitter',
    'MetricsCollector'
]
