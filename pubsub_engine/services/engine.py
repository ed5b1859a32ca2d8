"""
Pub/Sub load-test engine.

The engine validates its configuration once, compiles each scenario's flow,
and returns a coroutine function that runs one virtual user: emit
``started``, acquire a topic handle, then execute every compiled step in
order against a single execution context.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ..config.settings import EngineSettings, BatchingPolicy
from ..models.context import ExecutionContext
from ..utils.error_handler import StructuredLogger
from ..utils.events import EventEmitter, STARTED_EVENT
from ..utils.logger import Logger
from .compiled import CompiledStep
from .compiler import StepCompiler
from .flow import create_loop_with_count, create_think
from .publisher import acquire_topic
from .templating import render_template

logger = StructuredLogger(__name__)

DoneCallback = Callable[[Optional[BaseException], ExecutionContext], Any]
TopicFactory = Callable[[str, str, BatchingPolicy], Any]


@dataclass
class EngineHelpers:
    """Collaborators for templating and for building loop and think steps"""
    template: Callable = render_template
    create_loop_with_count: Callable = create_loop_with_count
    create_think: Callable = create_think


class SetupStep(CompiledStep):
    """Acquires the topic handle and stores it on the context"""

    name = "setup"

    def __init__(self, project: str, topic: str, batching: BatchingPolicy, topic_factory: TopicFactory):
        self.project = project
        self.topic = topic
        self.batching = batching
        self.topic_factory = topic_factory

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        logger.debug(f"Initializing Pub/Sub topic handle for {self.project}/{self.topic}")
        context.publisher = self.topic_factory(self.project, self.topic, self.batching)
        return context


class Scenario:
    """
    One compiled scenario; calling it runs a single virtual user.

    ``await scenario(context)`` returns the final context or raises the first
    step failure. When ``done`` is given it is called exactly once with
    ``(error_or_None, context)`` and nothing is raised.
    """

    def __init__(self, name: str, steps, setup: SetupStep, events: Any):
        self.name = name
        self.steps = list(steps)
        self.setup = setup
        self.events = events

    async def __call__(
        self,
        initial_context: Optional[ExecutionContext] = None,
        done: Optional[DoneCallback] = None
    ) -> ExecutionContext:
        context = initial_context if initial_context is not None else ExecutionContext()
        self.events.emit(STARTED_EVENT)

        started = time.monotonic()
        error: Optional[BaseException] = None
        with logger.context(scenario=self.name, scenario_id=context.scenario_id):
            try:
                for step in [self.setup] + self.steps:
                    context = await step.execute(context)
            except Exception as e:
                error = e
                logger.exception(f"Scenario '{self.name}' failed: {e}", exception=e)

        Logger.log_scenario_result(
            scenario_id=context.scenario_id,
            steps=len(self.steps),
            duration_ms=(time.monotonic() - started) * 1000,
            error=str(error) if error else ""
        )

        if done is not None:
            done(error, context)
            return context
        if error is not None:
            raise error
        return context


class PubSubEngine:
    """
    Engine that publishes scenario messages to one Pub/Sub topic.

    Args:
        script: load-test script mapping; its ``config`` section supplies
            project, topic, target, ``engines.gcppubsub.dryrun``,
            ``processor`` and ``defaults.think``
        events: emitter receiving ``started``, ``counter`` and ``histogram``
        helpers: templating and loop/think builders; defaults to EngineHelpers()
        topic_factory: ``(project, topic, batching) -> topic handle``

    Raises:
        ConfigurationException: if project or topic is missing
    """

    def __init__(
        self,
        script: Mapping[str, Any],
        events: Optional[EventEmitter] = None,
        helpers: Any = None,
        topic_factory: Optional[TopicFactory] = None
    ):
        self.script = script
        self.events = events if events is not None else EventEmitter()
        self.helpers = helpers if helpers is not None else EngineHelpers()
        self.topic_factory = topic_factory or acquire_topic

        self.settings = EngineSettings.from_script_config(script.get('config'))
        self.target = self.settings.TARGET
        self.project = self.settings.PROJECT
        self.topic = self.settings.TOPIC
        self.dryrun = self.settings.DRYRUN

        self.compiler = StepCompiler(
            helpers=self.helpers,
            events=self.events,
            topic=self.topic,
            dryrun=self.dryrun,
            processor=self.settings.PROCESSOR,
            think_defaults=self.settings.THINK_DEFAULTS
        )

        logger.info(f"Pub/Sub engine ready: {self.settings.get_summary()}")

    def step(self, step: Any) -> CompiledStep:
        """Compile one declarative step"""
        return self.compiler.compile(step)

    def create_scenario(self, scenario_spec: Optional[Mapping[str, Any]]) -> Scenario:
        """Compile a scenario's flow into a runnable Scenario"""
        scenario_spec = scenario_spec or {}
        steps = self.compiler.compile_flow(scenario_spec.get('flow'))
        setup = SetupStep(self.project, self.topic, self.settings.BATCHING, self.topic_factory)
        name = scenario_spec.get('name') or 'scenario'
        return Scenario(name, steps, setup, self.events)
