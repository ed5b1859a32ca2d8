"""
Declarative step models for load-test scenarios

A scenario flow is a list of raw mappings such as ``{"think": 1}`` or
``{"message": {"json": {...}}}``. ``parse_step`` turns each mapping into one
of the step variants below; the compiler handles each variant separately.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

INFINITE_LOOP = -1


@dataclass(frozen=True)
class LoopStep:
    """Repeat a nested sequence of steps ``count`` times (-1 for forever)"""
    steps: Tuple["DeclarativeStep", ...] = ()
    count: int = INFINITE_LOOP


@dataclass(frozen=True)
class ThinkStep:
    """Pause the virtual user"""
    duration: Any
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FunctionStep:
    """Call a named function from the script's processor registry"""
    name: str


@dataclass(frozen=True)
class LogStep:
    """Log marker; carries no behavior beyond yielding once"""
    message: Any


@dataclass(frozen=True)
class MessageStep:
    """
    Publish action.

    ``json`` is the message template. ``has_template`` is False when the
    template was absent or null, which makes the compiled step fail.
    """
    json: Any = None
    multiplier: Any = 1
    attributes: Optional[Dict[str, str]] = None
    has_template: bool = True


@dataclass(frozen=True)
class UnrecognizedStep:
    """Any mapping without a known action key; executes as a no-op"""
    raw: Any = None


DeclarativeStep = Union[LoopStep, ThinkStep, FunctionStep, LogStep, MessageStep, UnrecognizedStep]


def _is_set(value: Any) -> bool:
    """Empty mappings and lists still count as set; other falsy values do not"""
    if isinstance(value, (Mapping, list, tuple)):
        return True
    return bool(value)


def parse_message(raw: Mapping[str, Any]) -> MessageStep:
    """Build a MessageStep from the value of a ``message`` key"""
    if not isinstance(raw, Mapping):
        return MessageStep(has_template=False)

    template = raw.get('json')
    multiplier = raw.get('multiplier')
    attributes = raw.get('attributes')

    return MessageStep(
        json=template,
        multiplier=1 if multiplier is None else multiplier,
        attributes=dict(attributes) if attributes else None,
        has_template=template is not None
    )


def parse_step(raw: Any) -> DeclarativeStep:
    """
    Convert one raw flow entry into a declarative step.

    Keys are checked in a fixed order: loop, log, think, function, message.
    Anything else, including non-mapping values, is an UnrecognizedStep.
    """
    if isinstance(raw, (LoopStep, ThinkStep, FunctionStep, LogStep, MessageStep, UnrecognizedStep)):
        return raw

    if not isinstance(raw, Mapping):
        return UnrecognizedStep(raw=raw)

    if _is_set(raw.get('loop')):
        count = raw.get('count')
        return LoopStep(
            steps=tuple(parse_step(item) for item in raw['loop']),
            count=int(count) if count else INFINITE_LOOP
        )

    if _is_set(raw.get('log')):
        return LogStep(message=raw['log'])

    if _is_set(raw.get('think')):
        return ThinkStep(duration=raw['think'], raw=dict(raw))

    if _is_set(raw.get('function')):
        return FunctionStep(name=str(raw['function']))

    if _is_set(raw.get('message')):
        return parse_message(raw['message'])

    logger.debug(f"Ignoring unrecognized step with keys {sorted(raw.keys())}")
    return UnrecognizedStep(raw=dict(raw))
