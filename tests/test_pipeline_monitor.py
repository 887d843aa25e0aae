# -*- coding: utf-8 -*-
"""
Execution Monitor Tests - Progress mapping, user cancellation and run
reports.

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
2026-03-13

Modified
--------
2026-03-16
"""

import logging

import pytest

from geodetect.exceptions import ProcessingError
from geodetect.pipeline.monitor import (
    DETECTING,
    READING,
    ExecutionMonitor,
    ProgressDisplay,
    TqdmProgressDisplay,
)
from geodetect.processing.node import (
    MetricEvent,
    PortKind,
    SinkNode,
    SourceNode,
    TransformNode,
)
from geodetect.vocabulary import RunStatus


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class RecordingDisplay(ProgressDisplay):

    def __init__(self):
        super().__init__()
        self.running = False
        self.started = False
        self.maximum = {}
        self.current = {}

    def start(self):
        self.started = True
        self.running = True

    def stop(self):
        self.running = False

    @property
    def is_running(self):
        return self.running

    def update_maximum(self, category, value):
        self.maximum[category] = value

    def update_current(self, category, value):
        self.current[category] = value


class Windows(SourceNode):
    OUTPUTS = {'subsets': PortKind.SUBSETS}
    METRICS = ('total', 'forwarded')

    def generate(self):
        count = self.attr('count', 3)
        self.metric('total').set(count)
        for i in range(count):
            self.metric('forwarded').increment()
            if self.attr('hold', False):
                # Park until the monitor cancels the run.
                self._cancelled.wait(5)
            yield i


class Detect(TransformNode):
    INPUTS = {'subsets': PortKind.SUBSETS}
    OUTPUTS = {'features': PortKind.FEATURES}
    METRICS = ('processed',)

    def process(self, items):
        for item in items:
            if item == self.attr('fail_on', None):
                raise RuntimeError("model crashed")
            self.metric('processed').increment()
            yield item


class Collect(SinkNode):
    INPUTS = {'features': PortKind.FEATURES}
    METRICS = ('processed',)

    def consume(self, item):
        self.metric('processed').increment()


class FakePipeline:

    def __init__(self, **attrs):
        self.sliding_window = Windows.create('slidingWindow', **attrs)
        self.detector = Detect.create('detector', **attrs)
        self.sink = Collect('featureSink')
        self.detector.input('subsets').connect(self.sliding_window.output('subsets'))
        self.sink.input('features').connect(self.detector.output('features'))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

class TestHandleEvent:

    @pytest.fixture
    def display(self):
        display = RecordingDisplay()
        display.start()
        return display

    def test_total_sets_both_maximums(self, display):
        monitor = ExecutionMonitor(FakePipeline(), display)
        monitor.handle_event(MetricEvent('slidingWindow', 'total', 12))
        assert display.maximum == {READING: 12, DETECTING: 12}

    def test_progress(self, display):
        monitor = ExecutionMonitor(FakePipeline(), display)
        monitor.handle_event(MetricEvent('slidingWindow', 'forwarded', 4))
        monitor.handle_event(MetricEvent('detector', 'processed', 2))
        assert display.current == {READING: 4, DETECTING: 2}

    def test_stopped_display_cancels_once(self, display):
        pipeline = FakePipeline()
        cancels = []
        original = pipeline.sink.cancel
        pipeline.sink.cancel = lambda: (cancels.append(1), original())
        monitor = ExecutionMonitor(pipeline, display)

        display.stop()
        monitor.handle_event(MetricEvent('slidingWindow', 'total', 12))
        monitor.handle_event(MetricEvent('detector', 'processed', 1))
        assert cancels == [1]
        assert monitor.cancel_requested
        assert pipeline.sliding_window.cancelled
        assert display.maximum == {}


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

class TestRun:

    def test_quiet_run(self, caplog):
        with caplog.at_level(logging.INFO):
            report = ExecutionMonitor(FakePipeline(count=5), quiet=True).run()
        assert report.status is RunStatus.COMPLETED
        assert report.feature_count == 5
        assert report.duration >= 0
        assert "features detected" not in caplog.text

    def test_interactive_run(self, caplog):
        display = RecordingDisplay()
        with caplog.at_level(logging.INFO, logger='geodetect.pipeline.monitor'):
            report = ExecutionMonitor(FakePipeline(count=4), display, poll_interval=0.01).run()
        assert display.started and not display.running
        assert display.maximum[READING] == 4
        assert display.current == {READING: 4, DETECTING: 4}
        assert report.feature_count == 4
        assert "4 features detected." in caplog.text
        assert "Processing time" in caplog.text

    def test_user_stop(self, caplog):
        display = RecordingDisplay()
        pipeline = FakePipeline(count=100, hold=True)
        # Stop as soon as the plan is known.
        original = display.update_maximum

        def stop_on_total(category, value):
            original(category, value)
            display.running = False

        display.update_maximum = stop_on_total
        with caplog.at_level(logging.INFO, logger='geodetect.pipeline.monitor'):
            report = ExecutionMonitor(pipeline, display, poll_interval=0.01).run()
        assert report.status is RunStatus.CANCELLED
        assert report.feature_count < 100
        assert "Processing stopped early" in caplog.text

    def test_failure_propagates(self):
        monitor = ExecutionMonitor(FakePipeline(count=3, fail_on=1), RecordingDisplay(), poll_interval=0.01)
        with pytest.raises(ProcessingError, match="model crashed"):
            monitor.run()


class TestTqdmProgressDisplay:

    def test_lifecycle(self):
        display = TqdmProgressDisplay(disable=True)
        display.start()
        assert display.is_running
        display.update_maximum(READING, 10)
        display.update_current(READING, 3)
        display.request_stop()
        assert not display.is_running
        display.stop()
