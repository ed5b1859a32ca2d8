"""
Unit tests for the step compiler
"""
import asyncio
import pytest
from unittest.mock import Mock, AsyncMock

from pubsub_engine.exceptions import MissingTemplateException
from pubsub_engine.models.context import ExecutionContext
from pubsub_engine.models.steps import (
    LoopStep, LogStep, MessageStep, ThinkStep, FunctionStep, UnrecognizedStep, parse_step
)
from pubsub_engine.services.compiled import NoOpStep, LogMarkerStep, CustomFunctionStep
from pubsub_engine.services.fanout import PublishMessageStep


@pytest.mark.unit
class TestParseStep:
    """Raw flow entries map onto declarative variants"""

    def test_loop_with_count(self):
        step = parse_step({'loop': [{'log': 'hi'}], 'count': 3})
        assert step == LoopStep(steps=(LogStep(message='hi'),), count=3)

    def test_loop_without_count_is_infinite(self):
        assert parse_step({'loop': []}).count == -1

    def test_loop_with_zero_count_is_infinite(self):
        assert parse_step({'loop': [], 'count': 0}).count == -1

    def test_message_defaults(self):
        step = parse_step({'message': {'json': {'a': 1}}})
        assert step == MessageStep(json={'a': 1}, multiplier=1, attributes=None, has_template=True)

    def test_message_without_json(self):
        assert parse_step({'message': {'multiplier': 1}}).has_template is False

    def test_message_with_null_json(self):
        assert parse_step({'message': {'json': None}}).has_template is False

    def test_message_with_empty_object_template(self):
        assert parse_step({'message': {'json': {}}}).has_template is True

    def test_think_keeps_raw_mapping(self):
        assert parse_step({'think': 2}) == ThinkStep(duration=2, raw={'think': 2})

    def test_function(self):
        assert parse_step({'function': 'setUser'}) == FunctionStep(name='setUser')

    @pytest.mark.parametrize('raw', [{'unknown': 'action'}, {}, 'not a mapping', None])
    def test_unrecognized(self, raw):
        assert isinstance(parse_step(raw), UnrecognizedStep)

    @pytest.mark.parametrize('raw', [
        {'message': False}, {'message': 0}, {'message': ''}, {'message': None},
        {'loop': False}, {'loop': None}, {'log': ''}, {'function': ''}
    ])
    def test_falsy_action_values_are_unrecognized(self, raw):
        assert isinstance(parse_step(raw), UnrecognizedStep)

    def test_empty_message_mapping_is_a_message(self):
        assert parse_step({'message': {}}) == MessageStep(json=None, multiplier=1, attributes=None, has_template=False)

    @pytest.mark.asyncio
    async def test_falsy_message_value_executes_as_noop(self, engine, mock_topic):
        context = ExecutionContext(publisher=mock_topic)

        step = engine.step({'message': False})

        assert isinstance(step, NoOpStep)
        assert await step.execute(context) is context
        mock_topic.publish_message.assert_not_called()


@pytest.mark.unit
class TestStepCompiler:
    """Compilation of each declarative variant"""

    def test_loop_delegates_to_loop_builder(self, engine, mock_helpers):
        engine.step({'loop': [{'message': {'json': {'test': 'data'}}}], 'count': 5})

        mock_helpers.create_loop_with_count.assert_called_once()
        count, body, opts = mock_helpers.create_loop_with_count.call_args.args
        assert count == 5
        assert opts == {}
        assert len(body) == 1
        assert isinstance(body[0], PublishMessageStep)

    def test_loop_without_count_passes_infinite(self, engine, mock_helpers):
        engine.step({'loop': [{'log': 'x'}]})

        assert mock_helpers.create_loop_with_count.call_args.args[0] == -1

    def test_nested_loops_compile_recursively(self, engine, mock_helpers):
        inner_compiled = Mock(name='inner_loop')
        outer_compiled = Mock(name='outer_loop')
        mock_helpers.create_loop_with_count.side_effect = [inner_compiled, outer_compiled]

        result = engine.step({
            'loop': [
                {'log': 'outer'},
                {'loop': [{'message': {'json': {'n': 1}}}, {'think': 1}], 'count': 2}
            ],
            'count': 3
        })

        assert result is outer_compiled
        inner_call, outer_call = mock_helpers.create_loop_with_count.call_args_list
        assert inner_call.args[0] == 2
        assert isinstance(inner_call.args[1][0], PublishMessageStep)
        assert inner_call.args[1][1] is mock_helpers.create_think.return_value
        assert outer_call.args[0] == 3
        assert isinstance(outer_call.args[1][0], LogMarkerStep)
        assert outer_call.args[1][1] is inner_compiled

    def test_think_delegates_with_defaults(self, base_script, mock_events, mock_helpers, topic_factory):
        from pubsub_engine.services.engine import PubSubEngine
        base_script['config']['defaults'] = {'think': {'jitter': '10%'}}
        engine = PubSubEngine(base_script, mock_events, mock_helpers, topic_factory=topic_factory)

        engine.step({'think': 1000})

        mock_helpers.create_think.assert_called_once_with({'think': 1000}, {'jitter': '10%'})

    def test_think_without_defaults(self, engine, mock_helpers):
        engine.step({'think': 1000})

        mock_helpers.create_think.assert_called_once_with({'think': 1000}, {})

    def test_message_compiles_to_publish_step(self, engine):
        step = engine.step({'message': {'json': {'test': 'data'}, 'multiplier': 2, 'attributes': {'source': 'test'}}})

        assert isinstance(step, PublishMessageStep)
        assert step.step.multiplier == 2
        assert step.step.attributes == {'source': 'test'}

    def test_function_compiles_to_function_step(self, engine):
        assert isinstance(engine.step({'function': 'anything'}), CustomFunctionStep)

    def test_unrecognized_compiles_to_noop(self, engine):
        assert isinstance(engine.step({'unknown': 'action'}), NoOpStep)

    def test_accepts_parsed_steps(self, engine):
        assert isinstance(engine.step(LogStep(message='m')), LogMarkerStep)


@pytest.mark.unit
class TestCompiledSteps:
    """Execution behavior of the simple compiled steps"""

    @pytest.mark.asyncio
    async def test_log_step_returns_same_context(self, engine):
        context = ExecutionContext()
        assert await engine.step({'log': 'test message'}).execute(context) is context

    @pytest.mark.asyncio
    async def test_unrecognized_step_returns_same_context(self, engine):
        context = ExecutionContext()
        assert await engine.step({'unknown': 'action'}).execute(context) is context

    @pytest.mark.asyncio
    async def test_missing_function_is_noop(self, engine):
        context = ExecutionContext()
        assert await engine.step({'function': 'missingFunction'}).execute(context) is context

    @pytest.mark.asyncio
    async def test_function_called_with_context_events_and_done(self, engine, mock_events):
        func = Mock(side_effect=lambda context, events, done: done())
        engine.settings.PROCESSOR['testFunction'] = func
        context = ExecutionContext()

        result = await engine.step({'function': 'testFunction'}).execute(context)

        assert result is context
        func.assert_called_once()
        called_context, called_events, done = func.call_args.args
        assert called_context is context
        assert called_events is mock_events
        assert callable(done)

    @pytest.mark.asyncio
    async def test_function_step_waits_for_done(self, engine):
        captured = {}

        def deferred(context, events, done):
            captured['done'] = done

        engine.settings.PROCESSOR['deferred'] = deferred
        task = asyncio.ensure_future(engine.step({'function': 'deferred'}).execute(ExecutionContext()))

        await asyncio.sleep(0)
        assert not task.done()

        captured['done']()
        await asyncio.wait_for(task, timeout=1)
        assert task.done()

    @pytest.mark.asyncio
    async def test_function_done_argument_is_ignored(self, engine):
        engine.settings.PROCESSOR['failing'] = lambda context, events, done: done(Exception('ignored'))
        context = ExecutionContext()

        assert await engine.step({'function': 'failing'}).execute(context) is context

    @pytest.mark.asyncio
    async def test_coroutine_function_completes_on_return(self, engine):
        async def set_user(context, events, done):
            context.vars['user'] = 'bob'

        engine.settings.PROCESSOR['setUser'] = set_user
        context = ExecutionContext()

        await engine.step({'function': 'setUser'}).execute(context)

        assert context.vars['user'] == 'bob'

    @pytest.mark.asyncio
    async def test_function_exception_propagates(self, engine):
        engine.settings.PROCESSOR['boom'] = Mock(side_effect=RuntimeError('boom'))

        with pytest.raises(RuntimeError, match='boom'):
            await engine.step({'function': 'boom'}).execute(ExecutionContext())

    @pytest.mark.asyncio
    async def test_message_without_json_raises_missing_template(self, engine, mock_topic):
        step = engine.step({'message': {'multiplier': 1}})

        with pytest.raises(MissingTemplateException, match='json must be set'):
            await step.execute(ExecutionContext(publisher=mock_topic))

        mock_topic.publish_message.assert_not_called()
