# -*- coding: utf-8 -*-
"""
Model Module - Trained model interface and mask polygonization.

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

from geodetect.model.base import (
    DetectionModel,
    ModelMetadata,
    ModelOutput,
    Prediction,
    SegmentationModel,
    load_model,
)
from geodetect.model.polygonize import RasterToPolygon

__all__ = [
    'DetectionModel',
    'ModelMetadata',
    'ModelOutput',
    'Prediction',
    'SegmentationModel',
    'load_model',
    'RasterToPolygon',
]
