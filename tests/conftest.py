"""
Pytest configuration and shared fixtures for engine tests
"""
import pytest
from unittest.mock import Mock, AsyncMock

from pubsub_engine.models.context import ExecutionContext
from pubsub_engine.services.engine import PubSubEngine
from pubsub_engine.utils.error_handler import error_tracker_instance


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep engine environment fallbacks out of tests"""
    for var in ('PUBSUB_PROJECT', 'PUBSUB_TOPIC', 'PUBSUB_DRYRUN', 'LOG_LEVEL'):
        monkeypatch.delenv(var, raising=False)
    yield
    error_tracker_instance.reset()


@pytest.fixture
def mock_events():
    """Event emitter double recording every emit call"""
    events = Mock()
    events.emit = Mock(return_value=True)
    return events


@pytest.fixture
def mock_helpers():
    """Templating and loop/think builder doubles"""
    helpers = Mock()
    helpers.template = Mock(side_effect=lambda template, context: template)
    helpers.create_loop_with_count = Mock(return_value=Mock(name="compiled_loop"))
    helpers.create_think = Mock(return_value=Mock(name="compiled_think"))
    return helpers


@pytest.fixture
def base_script():
    """Minimal valid script"""
    return {
        'config': {
            'target': 'http://localhost',
            'project': 'test-project',
            'topic': 'test-topic',
            'engines': {
                'gcppubsub': {
                    'dryrun': False
                }
            }
        }
    }


@pytest.fixture
def dryrun_script(base_script):
    base_script['config']['engines']['gcppubsub']['dryrun'] = True
    return base_script


@pytest.fixture
def mock_topic():
    """Topic handle whose publishes all succeed"""
    topic = Mock()
    topic.publish_message = AsyncMock(return_value='mock-message-id')
    return topic


@pytest.fixture
def topic_factory(mock_topic):
    return Mock(return_value=mock_topic)


@pytest.fixture
def engine(base_script, mock_events, mock_helpers, topic_factory):
    return PubSubEngine(base_script, mock_events, mock_helpers, topic_factory=topic_factory)


@pytest.fixture
def context(mock_topic):
    """Context as it looks after scenario setup"""
    return ExecutionContext(vars={'user': 'alice'}, publisher=mock_topic)


@pytest.fixture
def emitted(mock_events):
    """Counts emit calls made with exactly the given arguments"""
    def count(*args):
        return sum(1 for c in mock_events.emit.call_args_list if c.args == args)
    return count
