# -*- coding: utf-8 -*-
"""
Planning Module - Window plans and region filters.

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
2026-03-05

Modified
--------
2026-03-16
"""

from geodetect.planning.windows import WindowPlanner, WindowSpec
from geodetect.planning.region_filter import (
    RegionFilter,
    RegionFilterBuilder,
    fold_region,
)

__all__ = [
    'WindowPlanner',
    'WindowSpec',
    'RegionFilter',
    'RegionFilterBuilder',
    'fold_region',
]
