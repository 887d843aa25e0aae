# -*- coding: utf-8 -*-
"""
Processing Nodes - Ports, attributes, metrics and pull-based execution.

A detection pipeline is a directed acyclic graph of nodes. Each node has
named input and output ports, a dictionary of attributes and a set of
named metrics. Ports carry a kind (``PortKind``) that is checked when two
ports are connected, so a block stream can never be wired into a
prediction consumer.

Execution is pull-based. The sink runs on a worker thread and iterates the
stream of its upstream node, which iterates its own upstream, and so on
back to the source. Cancellation is cooperative: ``cancel()`` sets a
``threading.Event`` on the node and every node upstream of it. Only the
stages that create work (sources, the block cache and the sliding window)
check the event. Downstream stages and the sink drain what is already in
flight, so a cancelled run still ends with the predictions made so far.

Node roles:

- ``SourceNode`` produces items with ``generate()`` and has no inputs.
- ``TransformNode`` maps an upstream iterator to a downstream one with
  ``process()``.
- ``SinkNode`` consumes items with ``consume()`` and owns the worker
  thread (``run``/``wait``).

Metric changes are delivered to subscribers synchronously on the thread
that changed them. ``EventChannel`` hands them over to another thread as
``MetricEvent`` items.

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
2026-03-18
"""

# Standard library
import logging
import queue
import threading
from enum import Enum
from typing import (
    Any, Callable, ClassVar, Dict, Iterator, List, NamedTuple, Optional,
)

# geodetect internal
from geodetect.exceptions import GraphConstructionError, ProcessingError
from geodetect.vocabulary import RunStatus

logger = logging.getLogger(__name__)

_MISSING = object()


class PortKind(Enum):
    """Kind of items carried by a port."""

    BLOCKS = "blocks"
    SUBSETS = "subsets"
    PREDICTIONS = "predictions"
    FEATURES = "features"


# ---------------------------------------------------------------------------
# Metrics and events
# ---------------------------------------------------------------------------

class MetricEvent(NamedTuple):
    """A metric change, as published on an ``EventChannel``."""

    node: str
    metric: str
    value: Any


class Metric:
    """Thread-safe named value with change subscribers.

    Parameters
    ----------
    name : str
        Metric name.
    value : Any
        Initial value.
    """

    def __init__(self, name: str, value: Any = 0) -> None:
        self.name = name
        self._value = value
        self._lock = threading.Lock()
        self._subscribers: List[Callable[['Metric', Any], None]] = []

    @property
    def value(self) -> Any:
        with self._lock:
            return self._value

    def subscribe(self, callback: Callable[['Metric', Any], None]) -> None:
        """Call ``callback(metric, value)`` every time the value changes."""
        self._subscribers.append(callback)

    def set(self, value: Any) -> None:
        with self._lock:
            changed = value != self._value
            self._value = value
        if changed:
            for callback in list(self._subscribers):
                callback(self, value)

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount
            value = self._value
        if amount:
            for callback in list(self._subscribers):
                callback(self, value)

    def __int__(self) -> int:
        return int(self.value)

    def __repr__(self) -> str:
        return f"Metric({self.name!r}, {self.value!r})"


class EventChannel:
    """Queue handing metric events from worker threads to a consumer.

    Examples
    --------
    >>> channel = EventChannel()
    >>> window.metric('total').subscribe(channel.subscriber('slidingWindow'))
    >>> for event in channel.drain(timeout=0.1):
    ...     handle(event)
    """

    def __init__(self) -> None:
        self._queue: 'queue.Queue[MetricEvent]' = queue.Queue()

    def publish(self, event: MetricEvent) -> None:
        self._queue.put(event)

    def subscriber(self, node_name: str) -> Callable[[Metric, Any], None]:
        """Metric callback publishing to this channel."""
        def _publish(metric: Metric, value: Any) -> None:
            self.publish(MetricEvent(node_name, metric.name, value))
        return _publish

    def drain(self, timeout: Optional[float] = None) -> Iterator[MetricEvent]:
        """Yield queued events, waiting up to *timeout* for the first one."""
        try:
            yield self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

class OutputPort:
    """Producer side of an edge. May feed any number of inputs."""

    def __init__(self, node: 'Node', name: str, kind: PortKind) -> None:
        self.node = node
        self.name = name
        self.kind = kind

    def stream(self) -> Iterator[Any]:
        return self.node.stream(self.name)

    def __repr__(self) -> str:
        return f"OutputPort({self.node.name}.{self.name}, {self.kind.value})"


class InputPort:
    """Consumer side of an edge. Bound to exactly one ``OutputPort``."""

    def __init__(self, node: 'Node', name: str, kind: PortKind) -> None:
        self.node = node
        self.name = name
        self.kind = kind
        self.source: Optional[OutputPort] = None

    @property
    def is_bound(self) -> bool:
        return self.source is not None

    def connect(self, output: OutputPort) -> None:
        """Bind this input to *output*.

        Raises
        ------
        GraphConstructionError
            If the input is already bound or the port kinds differ.
        """
        if self.source is not None:
            raise GraphConstructionError(
                f"Input '{self.node.name}.{self.name}' is already connected "
                f"to '{self.source.node.name}.{self.source.name}'"
            )
        if output.kind is not self.kind:
            raise GraphConstructionError(
                f"Cannot connect '{output.node.name}.{output.name}' "
                f"({output.kind.value}) to '{self.node.name}.{self.name}' "
                f"({self.kind.value})"
            )
        self.source = output

    def __repr__(self) -> str:
        return f"InputPort({self.node.name}.{self.name}, {self.kind.value})"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class Node:
    """Base class for processing nodes.

    Subclasses declare their ports and metrics with the ``INPUTS``,
    ``OUTPUTS`` and ``METRICS`` class attributes.

    Parameters
    ----------
    name : str, optional
        Node name, the class name by default.
    """

    INPUTS: ClassVar[Dict[str, PortKind]] = {}
    OUTPUTS: ClassVar[Dict[str, PortKind]] = {}
    METRICS: ClassVar[tuple] = ()

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name or type(self).__name__
        self.attrs: Dict[str, Any] = {}
        self._attr_sources: List['Node'] = []
        self._inputs = {
            port: InputPort(self, port, kind) for port, kind in self.INPUTS.items()
        }
        self._outputs = {
            port: OutputPort(self, port, kind) for port, kind in self.OUTPUTS.items()
        }
        self._metrics = {metric: Metric(metric) for metric in self.METRICS}
        self._cancelled = threading.Event()

    @classmethod
    def create(cls, name: Optional[str] = None, **attrs: Any) -> 'Node':
        node = cls(name)
        node.attrs.update(attrs)
        return node

    # -- attributes --------------------------------------------------------

    def attr(self, key: str, default: Any = _MISSING) -> Any:
        """Attribute value, falling back to attribute-connected nodes.

        Connected nodes are searched most recently connected first.

        Raises
        ------
        GraphConstructionError
            If the attribute is not found and no *default* is given.
        """
        value = self._lookup_attr(key)
        if value is not _MISSING:
            return value
        if default is not _MISSING:
            return default
        raise GraphConstructionError(
            f"Node '{self.name}' has no attribute '{key}'"
        )

    def _lookup_attr(self, key: str) -> Any:
        if key in self.attrs:
            return self.attrs[key]
        for source in reversed(self._attr_sources):
            value = source._lookup_attr(key)
            if value is not _MISSING:
                return value
        return _MISSING

    def set_attr(self, key: str, value: Any) -> None:
        self.attrs[key] = value

    def connect_attrs(self, other: 'Node') -> None:
        """Read attributes this node does not set itself from *other*."""
        self._attr_sources.append(other)

    # -- ports and metrics -------------------------------------------------

    def input(self, port: str) -> InputPort:
        try:
            return self._inputs[port]
        except KeyError:
            raise GraphConstructionError(
                f"Node '{self.name}' has no input '{port}'"
            ) from None

    def output(self, port: str) -> OutputPort:
        try:
            return self._outputs[port]
        except KeyError:
            raise GraphConstructionError(
                f"Node '{self.name}' has no output '{port}'"
            ) from None

    def metric(self, name: str) -> Metric:
        try:
            return self._metrics[name]
        except KeyError:
            raise GraphConstructionError(
                f"Node '{self.name}' has no metric '{name}'"
            ) from None

    @property
    def inputs(self) -> Dict[str, InputPort]:
        return dict(self._inputs)

    @property
    def outputs(self) -> Dict[str, OutputPort]:
        return dict(self._outputs)

    def upstream_nodes(self) -> List['Node']:
        return [p.source.node for p in self._inputs.values() if p.source is not None]

    def validate(self) -> None:
        """Check this node and everything upstream of it is fully wired.

        Raises
        ------
        GraphConstructionError
            If any input port is unbound.
        """
        for port in self._inputs.values():
            if not port.is_bound:
                raise GraphConstructionError(
                    f"Input '{self.name}.{port.name}' is not connected"
                )
        for node in self.upstream_nodes():
            node.validate()

    # -- execution ---------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Request this node and all upstream nodes to stop."""
        if self._cancelled.is_set():
            return
        logger.debug("Cancelling %s", self.name)
        self._cancelled.set()
        for node in self.upstream_nodes():
            node.cancel()

    def upstream(self, port: str) -> Iterator[Any]:
        source = self.input(port).source
        if source is None:
            raise GraphConstructionError(
                f"Input '{self.name}.{port}' is not connected"
            )
        return source.stream()

    def stream(self, port: str) -> Iterator[Any]:
        """Iterate the items produced on output *port*."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class SourceNode(Node):
    """Node producing items from outside the graph."""

    def generate(self) -> Iterator[Any]:
        raise NotImplementedError

    def stream(self, port: str) -> Iterator[Any]:
        self.output(port)
        for item in self.generate():
            if self.cancelled:
                return
            yield item


class TransformNode(Node):
    """Node mapping one upstream stream to one downstream stream.

    The single input and single output are the first entries of
    ``INPUTS`` and ``OUTPUTS``.
    """

    def process(self, items: Iterator[Any]) -> Iterator[Any]:
        raise NotImplementedError

    def stream(self, port: str) -> Iterator[Any]:
        self.output(port)
        in_port = next(iter(self.INPUTS))
        yield from self.process(self.upstream(in_port))


class SinkNode(Node):
    """Terminal node that drives execution from a worker thread."""

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(name)
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None
        self._status: Optional[RunStatus] = None

    def consume(self, item: Any) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        """Called once after the last item, also when cancelled."""

    def run(self) -> None:
        """Start pulling from upstream on a worker thread.

        Raises
        ------
        GraphConstructionError
            If the graph is not fully wired or the node is already running.
        """
        if self._thread is not None:
            raise GraphConstructionError(f"Node '{self.name}' was already run")
        self.validate()
        self._thread = threading.Thread(
            target=self._execute, name=f"geodetect-{self.name}", daemon=True
        )
        self._thread.start()

    def _execute(self) -> None:
        in_port = next(iter(self.INPUTS))
        try:
            for item in self.upstream(in_port):
                self.consume(item)
            self.finish()
        except Exception as e:
            logger.debug("%s failed", self.name, exc_info=True)
            self._error = e
            # Unblock read-ahead threads still feeding the graph.
            self.cancel()
        self._status = RunStatus.CANCELLED if self.cancelled else RunStatus.COMPLETED

    def wait(self, blocking: bool = True, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread.

        Parameters
        ----------
        blocking : bool
            Wait until the run ends. When False, only poll.
        timeout : float, optional
            Maximum wait in seconds when *blocking*.

        Returns
        -------
        bool
            True once the run has ended.

        Raises
        ------
        ProcessingError
            If any node failed while running.
        """
        if self._thread is None:
            raise GraphConstructionError(f"Node '{self.name}' is not running")
        if blocking:
            self._thread.join(timeout)
        if self._thread.is_alive():
            return False
        if self._error is not None:
            if isinstance(self._error, ProcessingError):
                raise self._error
            raise ProcessingError(
                f"Node '{self.name}' failed: {self._error}"
            ) from self._error
        return True

    @property
    def status(self) -> Optional[RunStatus]:
        """``None`` until the run ends."""
        return self._status
