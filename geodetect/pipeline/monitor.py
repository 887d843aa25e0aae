# -*- coding: utf-8 -*-
"""
Execution Monitor - Run the graph, report progress, honor cancellation.

In quiet mode the monitor simply runs the sink and waits. Otherwise the
sliding window's ``total``/``forwarded`` metrics and the detector's
``processed`` metric are published on an ``EventChannel`` and drained on
the calling thread, which drives a two-category progress display:

=========  ==================================  ===========================
Category   Maximum                             Current
=========  ==================================  ===========================
Reading    slidingWindow ``total``             slidingWindow ``forwarded``
Detecting  slidingWindow ``total``             detector ``processed``
=========  ==================================  ===========================

When the display is found stopped while handling an event, the sink is
cancelled once and no further progress is forwarded. The run then ends
with ``RunStatus.CANCELLED`` and the features gathered so far are written.

Dependencies
------------
tqdm

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
2026-03-12

Modified
--------
2026-03-16
"""

# Standard library
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, NamedTuple, Optional

# Third-party
from tqdm import tqdm

# geodetect internal
from geodetect.processing.node import EventChannel, MetricEvent
from geodetect.vocabulary import RunStatus

logger = logging.getLogger(__name__)

READING = "Reading"
DETECTING = "Detecting"
CATEGORIES = {
    READING: "Reading the image",
    DETECTING: "Detecting the object(s)",
}


class RunReport(NamedTuple):
    """Outcome of a run.

    Attributes
    ----------
    status : RunStatus
    feature_count : int
        Features received by the sink.
    duration : float
        Wall-clock seconds.
    """

    status: RunStatus
    feature_count: int
    duration: float


class ProgressDisplay(ABC):
    """Categories of progress, each with a maximum and a current value."""

    def __init__(self, categories: Optional[Dict[str, str]] = None) -> None:
        self.categories = dict(categories or CATEGORIES)

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """False once the display was stopped, by the run or by the user."""
        ...

    @abstractmethod
    def update_maximum(self, category: str, value: int) -> None:
        ...

    @abstractmethod
    def update_current(self, category: str, value: int) -> None:
        ...


class TqdmProgressDisplay(ProgressDisplay):
    """One tqdm bar per category.

    ``request_stop()`` marks the display stopped without closing the
    bars, e.g. from a SIGINT handler, which makes the monitor cancel the
    run at its next event.
    """

    def __init__(self, categories: Optional[Dict[str, str]] = None, **tqdm_kwargs) -> None:
        super().__init__(categories)
        self._tqdm_kwargs = tqdm_kwargs
        self._bars: Dict[str, tqdm] = {}
        self._running = False

    def start(self) -> None:
        self._bars = {
            name: tqdm(
                total=0, desc=description, position=i, leave=True,
                unit='window', **self._tqdm_kwargs,
            )
            for i, (name, description) in enumerate(self.categories.items())
        }
        self._running = True

    def request_stop(self) -> None:
        self._running = False

    def stop(self) -> None:
        self._running = False
        for bar in self._bars.values():
            bar.close()

    @property
    def is_running(self) -> bool:
        return self._running

    def update_maximum(self, category: str, value: int) -> None:
        bar = self._bars[category]
        bar.total = value
        bar.refresh()

    def update_current(self, category: str, value: int) -> None:
        bar = self._bars[category]
        bar.n = value
        bar.refresh()


class ExecutionMonitor:
    """Execute an assembled pipeline.

    Parameters
    ----------
    pipeline : AssembledPipeline
        Wired graph exposing ``sink``, ``sliding_window`` and ``detector``.
    display : ProgressDisplay, optional
        Progress display. Without one, or when *quiet*, the run is silent.
    quiet : bool
        Skip progress and the final summary log.
    poll_interval : float
        Seconds between checks of the sink while draining events.
    """

    def __init__(
        self,
        pipeline,
        display: Optional[ProgressDisplay] = None,
        quiet: bool = False,
        poll_interval: float = 0.1,
    ) -> None:
        self.pipeline = pipeline
        self.display = display
        self.quiet = quiet
        self.poll_interval = poll_interval
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def handle_event(self, event: MetricEvent) -> None:
        """Forward one metric change to the display, or cancel the run."""
        if self._cancel_requested:
            return
        if not self.display.is_running:
            logger.info("Progress display stopped, cancelling the run")
            self._cancel_requested = True
            self.pipeline.sink.cancel()
            return

        if event.metric == 'total':
            self.display.update_maximum(READING, int(event.value))
            self.display.update_maximum(DETECTING, int(event.value))
        elif event.metric == 'forwarded':
            self.display.update_current(READING, int(event.value))
        elif event.metric == 'processed':
            self.display.update_current(DETECTING, int(event.value))

    def _subscribe(self, channel: EventChannel) -> None:
        window = self.pipeline.sliding_window
        detector = self.pipeline.detector
        window.metric('total').subscribe(channel.subscriber(window.name))
        window.metric('forwarded').subscribe(channel.subscriber(window.name))
        detector.metric('processed').subscribe(channel.subscriber(detector.name))

    def _run_interactive(self) -> None:
        sink = self.pipeline.sink
        channel = EventChannel()
        self._subscribe(channel)
        self.display.start()
        try:
            sink.run()
            done = False
            while not done:
                done = sink.wait(timeout=self.poll_interval)
                for event in channel.drain():
                    self.handle_event(event)
        finally:
            self.display.stop()

    def run(self) -> RunReport:
        """Run the pipeline to the end.

        Returns
        -------
        RunReport

        Raises
        ------
        ProcessingError
            If a node failed.
        """
        sink = self.pipeline.sink
        start = time.perf_counter()
        if self.quiet or self.display is None:
            sink.run()
            sink.wait()
        else:
            self._run_interactive()
        duration = time.perf_counter() - start

        count = int(sink.metric('processed'))
        status = sink.status or RunStatus.COMPLETED
        if not self.quiet:
            if status is RunStatus.CANCELLED:
                logger.info("Processing stopped early")
            logger.info("%d features detected.", count)
            logger.info("Processing time %s s", duration)
        return RunReport(status, count, duration)
