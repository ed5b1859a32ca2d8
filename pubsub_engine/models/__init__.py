"""
Scenario data models
"""

from .context import ExecutionContext
from .steps import (
    DeclarativeStep,
    LoopStep,
    ThinkStep,
    FunctionStep,
    LogStep,
    MessageStep,
    UnrecognizedStep,
    INFINITE_LOOP,
    parse_step
)

__all__ = [
    'ExecutionContext',
    'DeclarativeStep',
    'LoopStep',
    'ThinkStep',
    'FunctionStep',
    'LogStep',
    'MessageStep',
    'UnrecognizedStep',
    'INFINITE_LOOP',
    'parse_step'
]
