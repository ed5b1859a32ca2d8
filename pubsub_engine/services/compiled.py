"""
Executable forms of declarative steps.

Every compiled step exposes one coroutine, ``execute(context)``, which
returns the context to hand to the next step or raises to fail the scenario.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..models.context import ExecutionContext

logger = logging.getLogger(__name__)


class CompiledStep(ABC):
    """Base class for executable steps"""

    name = "step"

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        ...

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"


class NoOpStep(CompiledStep):
    """Completes immediately without suspending"""

    name = "noop"

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        return context


class LogMarkerStep(CompiledStep):
    """Yields to the event loop once, then completes"""

    name = "log"

    def __init__(self, message: Any):
        self.message = message

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        await asyncio.sleep(0)
        logger.debug(f"log marker: {self.message}")
        return context


class CustomFunctionStep(CompiledStep):
    """
    Calls a processor function as ``func(context, events, done)``.

    A name missing from the registry makes the step a no-op that completes
    without suspending. Otherwise the step completes once ``done()`` is
    called; coroutine functions also complete when they return. Arguments passed to
    ``done`` are ignored.
    """

    def __init__(self, function_name: str, registry: Optional[dict], events: Any):
        self.name = function_name
        self.registry = registry
        self.events = events

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        func = resolve_function(self.registry, self.name)
        if func is None:
            return context

        loop = asyncio.get_running_loop()
        finished = loop.create_future()

        def done(*args):
            if not finished.done():
                finished.set_result(None)

        result = func(context, self.events, done)
        if inspect.isawaitable(result):
            pending = asyncio.ensure_future(result)
            waited, _ = await asyncio.wait({pending, finished}, return_when=asyncio.FIRST_COMPLETED)
            if pending in waited:
                pending.result()
            else:
                pending.add_done_callback(_log_late_failure)
        else:
            await finished

        return context


def _log_late_failure(task: "asyncio.Future"):
    if not task.cancelled() and task.exception() is not None:
        logger.warning(f"Processor function failed after signalling completion: {task.exception()}")


def resolve_function(registry: Optional[dict], name: str) -> Optional[Callable]:
    """Look a processor function up by name; missing entries yield None"""
    if not registry:
        return None
    func = registry.get(name)
    return func if callable(func) else None
