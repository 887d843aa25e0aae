# -*- coding: utf-8 -*-
"""
Vector IO - Region-filter layers in, detection features out.

Reading goes through geopandas/pyogrio so that every OGR-readable format
(shapefile, GeoJSON, GeoPackage, KML, ...) and every layer of a multi-layer
file is available. Writing builds a ``GeoDataFrame`` from detection features
and reprojects it to the requested output reference before saving.

Dependencies
------------
geopandas
pyogrio

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
2026-03-04

Modified
--------
2026-03-18
"""

# Standard library
import logging
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Sequence, Union

# Third-party
import geopandas as gpd
import pyogrio

# geodetect internal
from geodetect.geolocation.spatial_reference import LOCAL, SpatialReference

logger = logging.getLogger(__name__)


class VectorLayer(NamedTuple):
    """One layer of a vector file.

    Attributes
    ----------
    name : str
        Layer name.
    spatial_reference : SpatialReference
        Layer CRS, or ``LOCAL`` if the layer has none.
    geometries : List[shapely.geometry.base.BaseGeometry]
        Feature geometries in layer coordinates. Empty geometries are
        skipped.
    """

    name: str
    spatial_reference: SpatialReference
    geometries: List[Any]


def read_vector_layers(path: Union[str, Path]) -> List[VectorLayer]:
    """Read every layer of a vector file.

    Parameters
    ----------
    path : str or Path
        Vector file readable by OGR.

    Returns
    -------
    List[VectorLayer]

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    layers = []
    for name, _ in pyogrio.list_layers(path):
        frame = gpd.read_file(path, layer=name)
        sr = SpatialReference(frame.crs) if frame.crs is not None else LOCAL
        geometries = [
            geom for geom in frame.geometry
            if geom is not None and not geom.is_empty
        ]
        logger.debug(
            "Read %d geometries from layer %r of %s", len(geometries), name, path
        )
        layers.append(VectorLayer(str(name), sr, geometries))
    return layers


def write_features(
    features: Sequence[Any],
    path: Union[str, Path],
    layer: str,
    driver: str,
    spatial_reference: SpatialReference,
    output_spatial_reference: SpatialReference,
    columns: Sequence[str],
    append: bool = False,
) -> int:
    """Write features with a ``geometry`` and ``fields`` to a vector file.

    Parameters
    ----------
    features : Sequence
        Objects with ``geometry`` (shapely, in *spatial_reference*
        coordinates) and ``fields`` (``Dict[str, Any]``) attributes.
    path : str or Path
        Output file.
    layer : str
        Layer name.
    driver : str
        OGR driver name.
    spatial_reference : SpatialReference
        Reference the feature geometries are expressed in.
    output_spatial_reference : SpatialReference
        Reference to write. Ignored when either side is local.
    columns : Sequence[str]
        Attribute columns, in order. Missing fields are written empty.
    append : bool
        Append to an existing layer instead of overwriting.

    Returns
    -------
    int
        Number of features written.
    """
    records: List[Dict[str, Any]] = [
        {name: feature.fields.get(name) for name in columns}
        for feature in features
    ]
    crs = None if spatial_reference.is_local else spatial_reference.crs
    frame = gpd.GeoDataFrame(
        records,
        columns=list(columns),
        geometry=[feature.geometry for feature in features],
        crs=crs,
    )
    if crs is not None and not output_spatial_reference.is_local:
        frame = frame.to_crs(output_spatial_reference.crs)

    mode = 'a' if append and Path(path).exists() else 'w'
    # OGR's CSV driver drops geometry unless asked for WKT.
    options = {'GEOMETRY': 'AS_WKT'} if driver == 'CSV' else {}
    frame.to_file(path, layer=layer, driver=driver, mode=mode, **options)
    logger.debug("Wrote %d features to %s (%s)", len(frame), path, driver)
    return len(frame)


_SHAPEFILE_SIDECARS = ('.shx', '.dbf', '.prj', '.cpg', '.qix', '.sbn', '.sbx')


def remove_vector_file(path: Union[str, Path], driver: str) -> bool:
    """Delete an earlier output at *path*, with a shapefile's sidecar files.

    Returns
    -------
    bool
        Whether anything was deleted.
    """
    path = Path(path)
    targets = [path]
    if driver == 'ESRI Shapefile':
        targets.extend(path.with_suffix(suffix) for suffix in _SHAPEFILE_SIDECARS)
    removed = False
    for target in targets:
        if target.exists():
            target.unlink()
            removed = True
    if removed:
        logger.info("Removed previous output %s", path)
    return removed
