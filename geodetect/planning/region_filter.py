# -*- coding: utf-8 -*-
"""
Region Filter - Signed polygon masks restricting which windows run.

A region filter is built from an ordered list of ``(action, files)``
entries. Every polygon in every layer of the named vector files is mapped
into pixel space, then the entry's action is applied to the accumulated
region:

- ``include`` unions the polygons into the region.
- ``exclude`` subtracts them. When ``exclude`` is the very first action,
  the full extent is included first, so excluding alone still leaves the
  rest of the image to process.

The build is a fold over the action list (``fold_region``) returning an
immutable ``RegionFilter``. Layers are reconciled with the image before
their polygons are used: both must be geographically anchored, or both
must be local.

Dependencies
------------
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
2026-03-06

Modified
--------
2026-03-12
"""

# Standard library
import logging
from dataclasses import dataclass
from functools import reduce
from pathlib import Path
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple, Union

# Third-party
from shapely.geometry import Polygon
from shapely.ops import unary_union

# geodetect internal
from geodetect.IO.vector import VectorLayer, read_vector_layers
from geodetect.exceptions import (
    CrsMismatchError,
    UnknownFilterActionError,
    UnsupportedGeometryTypeError,
)
from geodetect.geolocation.box import PixelBox
from geodetect.geolocation.spatial_reference import WGS84, SpatialReference
from geodetect.geolocation.transforms import TransformationChain
from geodetect.vocabulary import FilterAction, RegionFilterMethod

logger = logging.getLogger(__name__)

FilterDefinition = Tuple[Union[str, FilterAction], Sequence[Union[str, Path]]]


@dataclass(frozen=True)
class RegionFilter:
    """Immutable pixel-space region restricting sliding windows.

    Attributes
    ----------
    extent : PixelBox
        Rectangle the filter is scoped to.
    region : shapely.geometry.base.BaseGeometry
        Accumulated region in pixel ``(col, row)`` coordinates.
    method : RegionFilterMethod
        ``ANY`` keeps windows touching the region, ``ALL`` keeps windows
        inside it.
    """

    extent: PixelBox
    region: Any
    method: RegionFilterMethod = RegionFilterMethod.ANY

    @property
    def is_empty(self) -> bool:
        return self.region.is_empty

    def accepts(self, window: PixelBox) -> bool:
        """Whether a window should be processed."""
        if self.region.is_empty:
            return False
        cell = window.to_polygon()
        if self.method is RegionFilterMethod.ALL:
            return self.region.covers(cell)
        # Touching along an edge only is not an overlap.
        return self.region.intersection(cell).area > 0


class _FoldState(NamedTuple):
    region: Any
    started: bool


def _parse_action(action: Union[str, FilterAction]) -> FilterAction:
    if isinstance(action, FilterAction):
        return action
    try:
        return FilterAction(str(action).strip().lower())
    except ValueError:
        raise UnknownFilterActionError(
            f"Unknown filtering action \"{action}\""
        ) from None


def fold_region(
    extent: PixelBox,
    actions: Sequence[Tuple[Union[str, FilterAction], Sequence[Polygon]]],
):
    """Apply include/exclude actions in order.

    Parameters
    ----------
    extent : PixelBox
        Full extent, included automatically when the first action is an
        exclusion.
    actions : Sequence[Tuple[str or FilterAction, Sequence[Polygon]]]
        Actions with their pixel-space polygons.

    Returns
    -------
    shapely.geometry.base.BaseGeometry
        The resulting region.

    Raises
    ------
    UnknownFilterActionError
        If an action is neither ``include`` nor ``exclude``.
    """
    def _step(state: _FoldState, entry) -> _FoldState:
        action, polygons = _parse_action(entry[0]), list(entry[1])
        if action is FilterAction.INCLUDE:
            return _FoldState(unary_union([state.region, *polygons]), True)

        region = state.region
        if not state.started:
            logger.info(
                "Regions excluded first, automatically including the "
                "bounding box"
            )
            region = unary_union([region, extent.to_polygon()])
        if polygons:
            region = region.difference(unary_union(polygons))
        return _FoldState(region, True)

    return reduce(_step, actions, _FoldState(Polygon(), False)).region


class RegionFilterBuilder:
    """Build a ``RegionFilter`` from vector files.

    Parameters
    ----------
    extent : PixelBox
        Scope of the filter, usually the area of interest.
    pixel_to_ll : TransformationChain
        Pixel to output-space chain from the ``GeoContext``.
    spatial_reference : SpatialReference
        Output reference of the image (``WGS84`` or ``LOCAL``).
    method : RegionFilterMethod
        Window test used by the resulting filter.
    reader : Callable, optional
        Layer reader, ``read_vector_layers`` by default.
    """

    def __init__(
        self,
        extent: PixelBox,
        pixel_to_ll: TransformationChain,
        spatial_reference: SpatialReference,
        method: RegionFilterMethod = RegionFilterMethod.ANY,
        reader: Optional[Callable[[Union[str, Path]], List[VectorLayer]]] = None,
    ) -> None:
        self.extent = extent
        self.pixel_to_ll = pixel_to_ll
        self.spatial_reference = spatial_reference
        self.method = method
        self._reader = reader or read_vector_layers

    def build(self, definitions: Sequence[FilterDefinition]) -> Optional[RegionFilter]:
        """Load every file and fold the actions.

        Returns
        -------
        RegionFilter or None
            ``None`` when *definitions* is empty.

        Raises
        ------
        UnknownFilterActionError
            If an action is neither ``include`` nor ``exclude``.
        UnsupportedGeometryTypeError
            If a file contains a non-polygon geometry.
        CrsMismatchError
            If a layer's anchoring disagrees with the image's.
        """
        if not definitions:
            return None

        logger.info("Initializing the subset filter...")
        actions = []
        for action, files in definitions:
            parsed = _parse_action(action)
            polygons: List[Polygon] = []
            for path in files:
                polygons.extend(self.load_polygons(path))
            actions.append((parsed, polygons))

        region = fold_region(self.extent, actions)
        return RegionFilter(self.extent, region, self.method)

    def load_polygons(self, path: Union[str, Path]) -> List[Polygon]:
        """Read a vector file and map its polygons into pixel space."""
        polygons: List[Polygon] = []
        for layer in self._reader(path):
            to_pixel = self._layer_to_pixel(layer, path)
            for geometry in layer.geometries:
                for polygon in _polygons_of(geometry, path):
                    polygons.append(to_pixel.transform_geometry(polygon))
        return polygons

    def _layer_to_pixel(self, layer: VectorLayer, path) -> TransformationChain:
        layer_sr = layer.spatial_reference
        if layer_sr.is_local != self.spatial_reference.is_local:
            if self.spatial_reference.is_local:
                raise CrsMismatchError(
                    f"Error applying region filter: input image doesn't have "
                    f"a spatial reference, but {path} does"
                )
            raise CrsMismatchError(
                f"Error applying region filter: {path} doesn't have a "
                f"spatial reference, but the input image does"
            )

        pixel_to_layer = self.pixel_to_ll
        if not layer_sr.is_local:
            pixel_to_layer = pixel_to_layer.append(layer_sr.from_(WGS84))
        return pixel_to_layer.inverse().compact()


def _polygons_of(geometry, path) -> List[Polygon]:
    if geometry.geom_type == 'Polygon':
        return [geometry]
    if geometry.geom_type == 'MultiPolygon':
        return list(geometry.geoms)
    raise UnsupportedGeometryTypeError(
        f"Filter from file \"{path}\" contains a geometry that is not a "
        f"POLYGON ({geometry.geom_type})"
    )
