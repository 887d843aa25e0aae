# -*- coding: utf-8 -*-
"""
Geolocation Module - Pixel, projected and geographic coordinates.

Composable invertible transforms, spatial references and the coordinate
transform manager producing a run's ``GeoContext``.

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
2026-03-03

Modified
--------
2026-03-16
"""

from geodetect.geolocation.box import GeoBox, PixelBox
from geodetect.geolocation.transforms import (
    Transformation,
    IdentityTransformation,
    AffineTransformation,
    CrsTransformation,
    TransformationChain,
)
from geodetect.geolocation.spatial_reference import LOCAL, WGS84, SpatialReference
from geodetect.geolocation.manager import CoordinateTransformManager, GeoContext

__all__ = [
    'GeoBox',
    'PixelBox',
    'Transformation',
    'IdentityTransformation',
    'AffineTransformation',
    'CrsTransformation',
    'TransformationChain',
    'LOCAL',
    'WGS84',
    'SpatialReference',
    'CoordinateTransformManager',
    'GeoContext',
]
