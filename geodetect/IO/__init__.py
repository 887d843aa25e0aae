# -*- coding: utf-8 -*-
"""
IO Module - Raster sources, map services and vector files.

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

from geodetect.IO.base import RasterInfo, RasterReader, has_alpha
from geodetect.IO.geotiff import GeoTIFFReader
from geodetect.IO.map_service import MapServiceClient, TileJsonClient, TileServiceConfig
from geodetect.IO.vector import VectorLayer, read_vector_layers, write_features

__all__ = [
    'RasterInfo',
    'RasterReader',
    'has_alpha',
    'GeoTIFFReader',
    'MapServiceClient',
    'TileJsonClient',
    'TileServiceConfig',
    'VectorLayer',
    'read_vector_layers',
    'write_features',
]
