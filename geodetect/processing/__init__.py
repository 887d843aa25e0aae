# -*- coding: utf-8 -*-
"""
Processing Module - Dataflow nodes of the detection pipeline.

Author
------
Duane Smalley, PhD
duane.d.smalley@gmail.com

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
2026-03-16
"""

from geodetect.processing.node import (
    EventChannel,
    InputPort,
    Metric,
    MetricEvent,
    Node,
    OutputPort,
    PortKind,
    SinkNode,
    SourceNode,
    TransformNode,
)

__all__ = [
    'EventChannel',
    'InputPort',
    'Metric',
    'MetricEvent',
    'Node',
    'OutputPort',
    'PortKind',
    'SinkNode',
    'SourceNode',
    'TransformNode',
]
