"""
Loop and think step builders.

These are the default collaborators the step compiler delegates to for
``loop`` and ``think`` steps; an engine can be given replacements.
"""

import asyncio
import logging
import random
from typing import Any, Mapping, Optional, Sequence

from ..models.context import ExecutionContext
from ..models.steps import INFINITE_LOOP
from .compiled import CompiledStep

logger = logging.getLogger(__name__)

LOOP_COUNT_VAR = "$loopCount"


class CountedLoopStep(CompiledStep):
    """Runs a body of steps ``count`` times, or forever when count is -1"""

    name = "loop"

    def __init__(self, count: int, steps: Sequence[CompiledStep]):
        self.count = count
        self.steps = list(steps)

    @property
    def infinite(self) -> bool:
        return self.count is None or self.count < 0

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        iteration = 0
        while self.infinite or iteration < self.count:
            iteration += 1
            context.vars[LOOP_COUNT_VAR] = iteration
            for step in self.steps:
                context = await step.execute(context)
            # iteration boundary is a suspension point
            await asyncio.sleep(0)
        return context


class ThinkTimeStep(CompiledStep):
    """Suspends the virtual user for a fixed duration in seconds"""

    name = "think"

    def __init__(self, seconds: float, jitter_percent: float = 0.0):
        self.seconds = max(0.0, float(seconds))
        self.jitter_percent = max(0.0, float(jitter_percent))

    def duration(self) -> float:
        if not self.jitter_percent:
            return self.seconds
        spread = self.seconds * self.jitter_percent / 100.0
        return max(0.0, self.seconds + random.uniform(-spread, spread))

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        await asyncio.sleep(self.duration())
        return context


def _parse_jitter(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, str):
        return float(value.strip().rstrip('%') or 0)
    return float(value)


def create_loop_with_count(count: Optional[int], steps: Sequence[CompiledStep], opts: Optional[Mapping[str, Any]] = None) -> CountedLoopStep:
    """Build a loop step; a missing count means loop forever"""
    return CountedLoopStep(INFINITE_LOOP if count is None else int(count), steps)


def create_think(step: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> ThinkTimeStep:
    """Build a think step from ``{"think": seconds}`` and the script's think defaults"""
    defaults = defaults or {}
    jitter = step.get('jitter', defaults.get('jitter'))
    return ThinkTimeStep(float(step['think']), _parse_jitter(jitter))
