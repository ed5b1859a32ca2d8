"""
Unit tests for the event emitter and metrics collector
"""
import json
import pytest
from unittest.mock import Mock

from pubsub_engine.utils.events import EventEmitter, COUNTER_EVENT, HISTOGRAM_EVENT, STARTED_EVENT
from pubsub_engine.utils.metrics_collector import MetricsCollector, HistogramSummary


@pytest.mark.unit
class TestEventEmitter:

    def test_emit_calls_listeners_with_args(self):
        events = EventEmitter()
        listener = Mock()
        events.on('counter', listener)

        assert events.emit('counter', 'name', 1) is True
        listener.assert_called_once_with('name', 1)

    def test_emit_without_listeners(self):
        assert EventEmitter().emit('started') is False

    def test_off_removes_listener(self):
        events = EventEmitter()
        listener = events.on('started', Mock())

        events.off('started', listener)

        assert events.listener_count('started') == 0
        events.emit('started')
        listener.assert_not_called()

    def test_failing_listener_does_not_stop_delivery(self):
        events = EventEmitter()
        second = Mock()
        events.on('counter', Mock(side_effect=RuntimeError('listener broke')))
        events.on('counter', second)

        events.emit('counter', 'x', 1)

        second.assert_called_once_with('x', 1)


@pytest.mark.unit
class TestMetricsCollector:

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_counters_accumulate(self, collector):
        collector.record_counter('gcppubsub.messages_published', 1)
        collector.record_counter('gcppubsub.messages_published', 1)
        collector.record_counter('gcppubsub.publish_errors', 1)

        assert collector.counter('gcppubsub.messages_published') == 2
        assert collector.counter('gcppubsub.publish_errors') == 1
        assert collector.counter('unknown') == 0

    def test_histogram_summary(self, collector):
        for value in range(1, 101):
            collector.record_histogram('gcppubsub.publish_latency', value)

        summary = collector.histogram_summary('gcppubsub.publish_latency')

        assert summary.count == 100
        assert summary.min == 1.0
        assert summary.max == 100.0
        assert summary.mean == 50.5
        assert summary.p50 == 50.0
        assert summary.p95 == 95.0
        assert summary.p99 == 99.0

    def test_empty_histogram(self, collector):
        assert collector.histogram_summary('none') == HistogramSummary(count=0)

    def test_sample_window_is_bounded(self):
        collector = MetricsCollector(max_samples=10)
        for value in range(100):
            collector.record_histogram('latency', value)

        summary = collector.histogram_summary('latency')

        assert summary.count == 100
        assert summary.min == 90.0

    def test_attach_subscribes_to_events(self, collector):
        events = EventEmitter()
        collector.attach(events)

        events.emit(STARTED_EVENT)
        events.emit(COUNTER_EVENT, 'published', 1)
        events.emit(HISTOGRAM_EVENT, 'latency', 12.5)

        assert collector.scenarios_started == 1
        assert collector.counter('published') == 1
        assert collector.histogram_summary('latency').max == 12.5

    def test_snapshot_is_serializable(self, collector):
        collector.record_started()
        collector.record_counter('published', 3)
        collector.record_histogram('latency', 4.0)

        snapshot = json.loads(json.dumps(collector.snapshot()))

        assert snapshot['scenarios_started'] == 1
        assert snapshot['counters'] == {'published': 3}
        assert snapshot['histograms']['latency']['count'] == 1

    def test_reset(self, collector):
        collector.record_started()
        collector.record_counter('published', 1)
        collector.record_histogram('latency', 1)

        collector.reset()

        assert collector.snapshot()['counters'] == {}
        assert collector.snapshot()['histograms'] == {}
        assert collector.scenarios_started == 0
