import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from ..exceptions import ConfigurationException

ENGINE_NAME = "gcppubsub"


@dataclass(frozen=True)
class BatchingPolicy:
    """Client-side batching requested when a topic handle is acquired"""
    max_messages: int = 1000
    max_latency_seconds: float = 3.0


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class EngineSettings:
    """Configuration settings for the Pub/Sub load-test engine"""

    def __init__(
        self,
        project: Optional[str] = None,
        topic: Optional[str] = None,
        target: Any = None,
        dryrun: Any = None,
        processor: Optional[Mapping[str, Callable]] = None,
        think_defaults: Optional[Mapping[str, Any]] = None,
        batching: Optional[BatchingPolicy] = None
    ):
        # The target is stored but never dialed; the host runner requires one
        self.TARGET = target

        self.PROJECT = project or os.environ.get("PUBSUB_PROJECT")
        self.TOPIC = topic or os.environ.get("PUBSUB_TOPIC")

        if dryrun is None:
            dryrun = os.environ.get("PUBSUB_DRYRUN", "false")
        self.DRYRUN = _as_bool(dryrun)

        self.PROCESSOR: Dict[str, Callable] = dict(processor or {})
        self.THINK_DEFAULTS: Dict[str, Any] = dict(think_defaults or {})
        self.BATCHING = batching or BatchingPolicy()

        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

        self._validate_settings()

    @classmethod
    def from_script_config(cls, config: Optional[Mapping[str, Any]]) -> "EngineSettings":
        """Build settings from the ``config`` section of a load-test script"""
        config = dict(config or {})
        engine_options = (config.get("engines") or {}).get(ENGINE_NAME) or {}
        defaults = config.get("defaults") or {}

        return cls(
            project=config.get("project"),
            topic=config.get("topic"),
            target=config.get("target"),
            dryrun=engine_options.get("dryrun"),
            processor=config.get("processor"),
            think_defaults=defaults.get("think")
        )

    def _validate_settings(self):
        """Project and topic are required; nothing can run without them"""
        if not self.PROJECT:
            raise ConfigurationException("'[project]' missing from environment config", config_key="project")
        if not self.TOPIC:
            raise ConfigurationException("'[topic]' missing from environment config", config_key="topic")
        if self.BATCHING.max_messages <= 0 or self.BATCHING.max_messages > 1000:
            raise ConfigurationException(
                "batching max_messages must be between 1 and 1000",
                config_key="batching.max_messages"
            )

    def get_summary(self):
        """Get a summary of current settings"""
        return {
            "project": self.PROJECT,
            "topic": self.TOPIC,
            "target": self.TARGET,
            "dryrun": self.DRYRUN,
            "log_level": self.LOG_LEVEL,
            "processor_functions": sorted(self.PROCESSOR.keys()),
            "batch_max_messages": self.BATCHING.max_messages,
            "batch_max_latency_seconds": self.BATCHING.max_latency_seconds
        }
