"""
Message fan-out publisher.

A message step renders its template ``multiplier`` times, then publishes all
rendered payloads concurrently and completes once every publish has settled.
"""

import asyncio
import inspect
import json
import math
from typing import Any, Callable, List, Optional

from ..exceptions import (
    BaseEngineException, MissingTemplateException, TemplateRenderException, ValidationException
)
from ..models.context import ExecutionContext, now_ms
from ..models.steps import MessageStep
from ..utils.error_handler import StructuredLogger
from ..utils.events import COUNTER_EVENT, HISTOGRAM_EVENT
from .compiled import CompiledStep

logger = StructuredLogger(__name__)

METRIC_PREFIX = "gcppubsub"
MESSAGES_PUBLISHED = f"{METRIC_PREFIX}.messages_published"
PUBLISH_ERRORS = f"{METRIC_PREFIX}.publish_errors"
PUBLISH_LATENCY = f"{METRIC_PREFIX}.publish_latency"


def encode_payload(value: Any) -> bytes:
    """Compact JSON encoding of a rendered message"""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def resolve_multiplier(value: Any) -> int:
    """Number of messages to send; fractional multipliers round up"""
    if value is None:
        return 1
    try:
        return math.ceil(float(value))
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationException(
            f"multiplier must be a number, got {value!r}",
            field='message.multiplier',
            value=value,
            original_exception=e
        ) from e


class PublishMessageStep(CompiledStep):
    """Compiled form of a ``message`` step"""

    name = "message"

    def __init__(
        self,
        step: MessageStep,
        template: Callable[[Any, ExecutionContext], Any],
        events: Any,
        topic: str,
        dryrun: bool = False
    ):
        self.step = step
        self.template = template
        self.events = events
        self.topic = topic
        self.dryrun = dryrun

    async def execute(self, context: ExecutionContext) -> ExecutionContext:
        if not self.step.has_template:
            raise MissingTemplateException()

        multiplier = resolve_multiplier(self.step.multiplier)
        if multiplier <= 0:
            return context

        payloads = await self._render_batch(context, multiplier)

        if self.dryrun:
            logger.debug(
                f"Dry run: prepared {len(payloads)} message(s) for topic {self.topic}",
                extra_context={'scenario_id': context.scenario_id}
            )
            return context

        await self._dispatch_batch(context, payloads)
        return context

    async def _render_batch(self, context: ExecutionContext, multiplier: int) -> List[bytes]:
        """Render every message of the batch in order; the first failure aborts the batch"""
        payloads = []
        for _ in range(multiplier):
            try:
                rendered = self.template(self.step.json, context)
                if inspect.isawaitable(rendered):
                    rendered = await rendered
                payload = encode_payload(rendered)
            except BaseEngineException:
                raise
            except Exception as e:
                logger.warning(
                    f"Error processing template: {e}",
                    extra_context={'scenario_id': context.scenario_id}
                )
                raise TemplateRenderException(
                    str(e), template=self.step.json, original_exception=e
                ) from e
            logger.debug(f"Publishing message to topic ({self.topic}): {payload[:512]!r}")
            payloads.append(payload)
        return payloads

    async def _dispatch_batch(self, context: ExecutionContext, payloads: List[bytes]):
        """Publish all payloads concurrently and raise the first observed failure"""
        publisher = context.publisher
        start_time = context.start_time
        attributes = dict(self.step.attributes or {})
        failures: List[BaseException] = []

        async def dispatch(payload: bytes) -> Optional[str]:
            try:
                message_id = await publisher.publish_message(payload, attributes)
            except Exception as e:
                failures.append(e)
                self.events.emit(COUNTER_EVENT, PUBLISH_ERRORS, 1)
                # the scenario runner tracks the failure that fails the step
                logger.error(
                    f"Error publishing message: {e}",
                    extra_context={'topic': self.topic, 'scenario_id': context.scenario_id}
                )
                raise
            logger.debug(f"Message published with ID: {message_id}")
            self.events.emit(COUNTER_EVENT, MESSAGES_PUBLISHED, 1)
            self.events.emit(HISTOGRAM_EVENT, PUBLISH_LATENCY, now_ms() - start_time)
            return message_id

        await asyncio.gather(*(dispatch(payload) for payload in payloads), return_exceptions=True)

        if failures:
            raise failures[0]


def build_message_step(
    step: MessageStep,
    template: Callable[[Any, ExecutionContext], Any],
    events: Any,
    topic: str,
    dryrun: bool = False
) -> PublishMessageStep:
    return PublishMessageStep(step, template, events, topic, dryrun)
