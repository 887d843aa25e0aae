# -*- coding: utf-8 -*-
"""
Vocabulary - Canonical enums for geodetect.

Single source of truth for the controlled vocabularies used across the
planners, the pipeline assembler and the processing nodes: image source
kinds, model categories, region-filter actions, label-filter modes, output
geometry types and formats, and run outcomes.

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
2026-03-02

Modified
--------
2026-03-06
"""

from enum import Enum


class SourceKind(Enum):
    """Where raster pixels come from.

    ``LOCAL`` reads a raster file; every other value is a remote tiled
    map service.
    """

    LOCAL = "local"
    DGCS = "dgcs"
    EVWHS = "evwhs"
    MAPS_API = "maps-api"
    TILE_JSON = "tile-json"

    @property
    def is_remote(self) -> bool:
        return self is not SourceKind.LOCAL


class ModelCategory(Enum):
    """Output family of a detection model.

    ``DETECTION`` models emit axis-aligned boxes; ``SEGMENTATION`` models
    emit polygon outlines.
    """

    DETECTION = "detection"
    SEGMENTATION = "segmentation"


class FilterAction(Enum):
    """Region-filter actions applied in order."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class LabelFilterType(Enum):
    """Whether a label filter keeps or drops the listed labels."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class RegionFilterMethod(Enum):
    """How a window is tested against a region filter.

    ``ANY`` keeps a window that touches the region at all; ``ALL`` keeps
    only windows fully inside it.
    """

    ANY = "any"
    ALL = "all"


class GeometryType(Enum):
    """Geometry written for each output feature."""

    POLYGON = "polygon"
    POINT = "point"


class OutputFormat(Enum):
    """Supported vector output formats, mapped to OGR driver names."""

    SHAPEFILE = "shp"
    GEOJSON = "geojson"
    GEOPACKAGE = "gpkg"
    KML = "kml"
    CSV = "csv"

    @property
    def driver(self) -> str:
        return _DRIVERS[self]


_DRIVERS = {
    OutputFormat.SHAPEFILE: "ESRI Shapefile",
    OutputFormat.GEOJSON: "GeoJSON",
    OutputFormat.GEOPACKAGE: "GPKG",
    OutputFormat.KML: "KML",
    OutputFormat.CSV: "CSV",
}


class RunStatus(Enum):
    """Terminal outcome of a pipeline run.

    ``CANCELLED`` is a user-requested early stop with a partial result,
    not an error.
    """

    COMPLETED = "completed"
    CANCELLED = "cancelled"
