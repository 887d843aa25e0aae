# -*- coding: utf-8 -*-
"""
Pipeline Module - Topology, assembly and execution of detection runs.

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
2026-03-11

Modified
--------
2026-03-16
"""

from geodetect.pipeline.topology import PipelineVariant, StageRole, Topology
from geodetect.pipeline.assembler import AssembledPipeline, PipelineAssembler
from geodetect.pipeline.monitor import (
    ExecutionMonitor,
    ProgressDisplay,
    RunReport,
    TqdmProgressDisplay,
)

__all__ = [
    'PipelineVariant',
    'StageRole',
    'Topology',
    'AssembledPipeline',
    'PipelineAssembler',
    'ExecutionMonitor',
    'ProgressDisplay',
    'RunReport',
    'TqdmProgressDisplay',
]
