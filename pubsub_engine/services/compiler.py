"""
Step compiler: declarative steps to executable steps.

Each declarative variant has its own handler. Loops recurse into their body
before delegating to the loop builder, so arbitrarily nested loops compile
into nested loop steps.
"""

import logging
from functools import singledispatchmethod
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ..models.steps import (
    DeclarativeStep, LoopStep, ThinkStep, FunctionStep, LogStep, MessageStep,
    UnrecognizedStep, INFINITE_LOOP, parse_step
)
from .compiled import CompiledStep, NoOpStep, LogMarkerStep, CustomFunctionStep
from .fanout import build_message_step

logger = logging.getLogger(__name__)


class StepCompiler:
    """
    Compiles declarative steps for one engine.

    Args:
        helpers: object providing ``template``, ``create_loop_with_count``
            and ``create_think``
        events: emitter handed to message steps and processor functions
        topic: topic name, used for log lines
        dryrun: when True, message steps render but never publish
        processor: registry of custom functions by name
        think_defaults: defaults passed to the think builder
    """

    def __init__(
        self,
        helpers: Any,
        events: Any,
        topic: str,
        dryrun: bool = False,
        processor: Optional[Mapping[str, Callable]] = None,
        think_defaults: Optional[Mapping[str, Any]] = None
    ):
        self.helpers = helpers
        self.events = events
        self.topic = topic
        self.dryrun = dryrun
        self.processor = processor if processor is not None else {}
        self.think_defaults = think_defaults or {}

    def compile(self, step: Any) -> CompiledStep:
        """Compile a raw flow entry or an already parsed declarative step"""
        return self._compile(parse_step(step))

    def compile_flow(self, flow: Optional[Sequence[Any]]) -> List[CompiledStep]:
        return [self.compile(step) for step in (flow or [])]

    @singledispatchmethod
    def _compile(self, step: DeclarativeStep) -> CompiledStep:
        raise TypeError(f"Unsupported step type: {type(step).__name__}")

    @_compile.register
    def _(self, step: LoopStep) -> CompiledStep:
        body = [self._compile(child) for child in step.steps]
        return self.helpers.create_loop_with_count(step.count or INFINITE_LOOP, body, {})

    @_compile.register
    def _(self, step: LogStep) -> CompiledStep:
        return LogMarkerStep(step.message)

    @_compile.register
    def _(self, step: ThinkStep) -> CompiledStep:
        return self.helpers.create_think(step.raw, self.think_defaults)

    @_compile.register
    def _(self, step: FunctionStep) -> CompiledStep:
        return CustomFunctionStep(step.name, self.processor, self.events)

    @_compile.register
    def _(self, step: MessageStep) -> CompiledStep:
        return build_message_step(step, self.helpers.template, self.events, self.topic, self.dryrun)

    @_compile.register
    def _(self, step: UnrecognizedStep) -> CompiledStep:
        return NoOpStep()
