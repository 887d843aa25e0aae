# -*- coding: utf-8 -*-
"""
Processing Node Tests - Port wiring, attribute fallback, metrics,
cancellation and threaded sink execution.

Dependencies
------------
pytest

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-03-07

Modified
--------
2026-03-13
"""

import threading

import pytest

from geodetect.exceptions import GraphConstructionError, ProcessingError
from geodetect.processing.node import (
    EventChannel,
    Metric,
    MetricEvent,
    PortKind,
    SinkNode,
    SourceNode,
    TransformNode,
)
from geodetect.vocabulary import RunStatus


# ---------------------------------------------------------------------------
# Test nodes
# ---------------------------------------------------------------------------

class Counter(SourceNode):
    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def generate(self):
        for i in range(self.attr('count', 5)):
            yield i


class Doubler(TransformNode):
    INPUTS = {'blocks': PortKind.BLOCKS}
    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def process(self, items):
        for item in items:
            yield item * 2


class Failing(TransformNode):
    INPUTS = {'blocks': PortKind.BLOCKS}
    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def process(self, items):
        for item in items:
            if item == 2:
                raise ValueError("bad block")
            yield item


class Collector(SinkNode):
    INPUTS = {'blocks': PortKind.BLOCKS}
    METRICS = ('processed',)

    def __init__(self, name=None):
        super().__init__(name)
        self.items = []
        self.finished = False

    def consume(self, item):
        self.items.append(item)
        self.metric('processed').increment()

    def finish(self):
        self.finished = True


class Blocking(SinkNode):
    """Waits on an event for every item."""

    INPUTS = {'blocks': PortKind.BLOCKS}

    def __init__(self, name=None):
        super().__init__(name)
        self.release = threading.Event()
        self.started = threading.Event()

    def consume(self, item):
        self.started.set()
        self.release.wait(5)


class FeatureSink(SinkNode):
    INPUTS = {'features': PortKind.FEATURES}

    def consume(self, item):
        pass


def chain(*nodes):
    for producer, consumer in zip(nodes, nodes[1:]):
        consumer.input(next(iter(consumer.INPUTS))).connect(
            producer.output(next(iter(producer.OUTPUTS)))
        )
    return nodes[-1]


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

class TestPorts:

    def test_connect(self):
        source, sink = Counter.create('src'), Collector.create('sink')
        sink.input('blocks').connect(source.output('blocks'))
        assert sink.input('blocks').is_bound
        assert sink.upstream_nodes() == [source]

    def test_kind_mismatch(self):
        with pytest.raises(GraphConstructionError, match="blocks"):
            FeatureSink('sink').input('features').connect(Counter('src').output('blocks'))

    def test_rebinding_rejected(self):
        sink = Collector('sink')
        sink.input('blocks').connect(Counter('a').output('blocks'))
        with pytest.raises(GraphConstructionError, match="already connected"):
            sink.input('blocks').connect(Counter('b').output('blocks'))

    def test_output_feeds_many(self):
        source = Counter('src')
        a, b = Collector('a'), Collector('b')
        a.input('blocks').connect(source.output('blocks'))
        b.input('blocks').connect(source.output('blocks'))
        assert a.upstream_nodes() == b.upstream_nodes() == [source]

    def test_unknown_port(self):
        with pytest.raises(GraphConstructionError):
            Counter('src').output('subsets')

    def test_validate_unbound_upstream(self):
        sink = chain(Doubler('double'), Collector('sink'))
        with pytest.raises(GraphConstructionError, match="double.blocks"):
            sink.validate()


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

class TestAttributes:

    def test_own_attribute(self):
        assert Counter.create('src', count=3).attr('count') == 3

    def test_default(self):
        assert Counter('src').attr('missing', 7) == 7

    def test_missing_raises(self):
        with pytest.raises(GraphConstructionError, match="'missing'"):
            Counter('src').attr('missing')

    def test_fallback_to_connected_node(self):
        source = Counter.create('src', bbox='aoi', block_size=(8, 8))
        cache = Doubler.create('cache', block_size=(4, 4))
        cache.connect_attrs(source)
        assert cache.attr('bbox') == 'aoi'
        assert cache.attr('block_size') == (4, 4)

    def test_most_recent_connection_first(self):
        first, second = Counter.create('a', value=1), Counter.create('b', value=2)
        node = Doubler('node')
        node.connect_attrs(first)
        node.connect_attrs(second)
        assert node.attr('value') == 2

    def test_transitive_fallback(self):
        source = Counter.create('src', dtype='uint16')
        middle, last = Doubler('middle'), Doubler('last')
        middle.connect_attrs(source)
        last.connect_attrs(middle)
        assert last.attr('dtype') == 'uint16'

    def test_none_is_a_value(self):
        source = Counter.create('src', padded_size=(1, 1))
        node = Doubler.create('node', padded_size=None)
        node.connect_attrs(source)
        assert node.attr('padded_size', 'default') is None


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class TestMetrics:

    def test_set_notifies_on_change_only(self):
        seen = []
        metric = Metric('total')
        metric.subscribe(lambda m, v: seen.append(v))
        metric.set(3)
        metric.set(3)
        metric.set(4)
        assert seen == [3, 4]

    def test_increment(self):
        seen = []
        metric = Metric('processed')
        metric.subscribe(lambda m, v: seen.append((m.name, v)))
        metric.increment()
        metric.increment(2)
        metric.increment(0)
        assert seen == [('processed', 1), ('processed', 3)]
        assert int(metric) == 3

    def test_concurrent_increments(self):
        metric = Metric('count')

        def bump():
            for _ in range(1000):
                metric.increment()

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert metric.value == 4000

    def test_event_channel(self):
        channel = EventChannel()
        metric = Metric('total')
        metric.subscribe(channel.subscriber('slidingWindow'))
        metric.set(10)
        metric.set(12)
        assert list(channel.drain()) == [
            MetricEvent('slidingWindow', 'total', 10),
            MetricEvent('slidingWindow', 'total', 12),
        ]
        assert list(channel.drain(timeout=0.01)) == []


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class TestExecution:

    def test_pull_through_transform(self):
        sink = chain(Counter.create('src', count=4), Doubler('double'), Collector('sink'))
        sink.run()
        assert sink.wait(timeout=5)
        assert sink.items == [0, 2, 4, 6]
        assert sink.finished
        assert sink.status is RunStatus.COMPLETED
        assert int(sink.metric('processed')) == 4

    def test_status_none_before_end(self):
        sink = chain(Counter('src'), Blocking('sink'))
        sink.run()
        assert sink.started.wait(5)
        assert sink.status is None
        assert not sink.wait(blocking=False)
        sink.release.set()
        sink.wait(timeout=5)

    def test_run_validates(self):
        with pytest.raises(GraphConstructionError):
            Collector('sink').run()

    def test_run_twice(self):
        sink = chain(Counter('src'), Collector('sink'))
        sink.run()
        sink.wait(timeout=5)
        with pytest.raises(GraphConstructionError, match="already run"):
            sink.run()

    def test_wait_before_run(self):
        with pytest.raises(GraphConstructionError):
            Collector('sink').wait()

    def test_error_surfaces_as_processing_error(self):
        sink = chain(Counter('src'), Failing('fail'), Collector('sink'))
        sink.run()
        with pytest.raises(ProcessingError, match="bad block"):
            sink.wait(timeout=5)
        assert sink.items == [0, 1]
        assert sink.cancelled

    def test_cancel_propagates_upstream(self):
        source, double = Counter('src'), Doubler('double')
        sink = chain(source, double, Collector('sink'))
        sink.cancel()
        assert source.cancelled and double.cancelled

    def test_cancel_does_not_propagate_downstream(self):
        source = Counter('src')
        sink = chain(source, Collector('sink'))
        source.cancel()
        assert not sink.cancelled

    def test_cancelled_run(self):
        sink = chain(Counter.create('src', count=1000), Blocking('sink'))
        sink.run()
        assert sink.started.wait(5)
        sink.cancel()
        sink.release.set()
        assert sink.wait(timeout=5)
        assert sink.status is RunStatus.CANCELLED
