"""
Step compilation, message publishing and scenario execution
"""

from .compiled import CompiledStep, NoOpStep, LogMarkerStep, CustomFunctionStep
from .compiler import StepCompiler
from .engine import PubSubEngine, Scenario, EngineHelpers
from .fanout import PublishMessageStep, MESSAGES_PUBLISHED, PUBLISH_ERRORS, PUBLISH_LATENCY
from .flow import CountedLoopStep, ThinkTimeStep, create_loop_with_count, create_think
from .publisher import TopicHandle, PubSubTopicHandle, acquire_topic
from .templating import TemplateRenderer, render_template

__all__ = [
    'CompiledStep',
    'NoOpStep',
    'LogMarkerStep',
    'CustomFunctionStep',
    'StepCompiler',
    'PubSubEngine',
    'Scenario',
    'EngineHelpers',
    'PublishMessageStep',
    'MESSAGES_PUBLISHED',
    'PUBLISH_ERRORS',
    'PUBLISH_LATENCY',
    'CountedLoopStep',
    'ThinkTimeStep',
    'create_loop_with_count',
    'create_think',
    'TopicHandle',
    'PubSubTopicHandle',
    'acquire_topic',
    'TemplateRenderer',
    'render_template'
]
