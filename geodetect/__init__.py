# -*- coding: utf-8 -*-
"""
geodetect - Geospatial object detection pipelines.

Assembles and drives a detection pipeline over a local raster or a web
map service: sliding windows are cut from the area of interest, run
through a trained model, and the detections are written as geolocated
vector features.

Dependencies
------------
numpy
rasterio
pyproj
shapely
geopandas

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

__version__ = "0.1.0"
__author__ = "Duane Smalley"

from geodetect.exceptions import (
    GeodetectError,
    ConfigurationError,
    GraphConstructionError,
    ProcessingError,
    GeolocationError,
)
from geodetect.vocabulary import (
    SourceKind,
    ModelCategory,
    OutputFormat,
    GeometryType,
    RunStatus,
)
from geodetect.config import RunConfig
from geodetect.app import DetectionRun

__all__ = [
    'GeodetectError',
    'ConfigurationError',
    'GraphConstructionError',
    'ProcessingError',
    'GeolocationError',
    'SourceKind',
    'ModelCategory',
    'OutputFormat',
    'GeometryType',
    'RunStatus',
    'RunConfig',
    'DetectionRun',
]
