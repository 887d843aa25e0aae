# -*- coding: utf-8 -*-
"""
Boxes - Integer pixel rectangles and geographic bounding boxes.

``PixelBox`` is the pixel-space rectangle used for the area of interest,
window extents and region-filter scopes. ``GeoBox`` is a WGS84 bounding box
as supplied by the user or stored in model metadata.

Coordinate Conventions
----------------------
- **Pixel space**: ``(x, y)`` = ``(col, row)`` with origin at the top-left
  corner, matching the shapely convention used throughout geodetect.
- **Geographic space**: ``(x, y)`` = ``(longitude, latitude)`` in WGS84.

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
2026-03-02

Modified
--------
2026-03-04
"""

# Standard library
import math
from typing import NamedTuple, Tuple

# Third-party
from shapely.geometry import Polygon, box

Bounds = Tuple[float, float, float, float]

# Absorbs floating-point drift when snapping transformed bounds to pixels.
_SNAP_TOLERANCE = 1e-6


class PixelBox(NamedTuple):
    """Integer rectangle in pixel space.

    Attributes
    ----------
    x : int
        First column (inclusive).
    y : int
        First row (inclusive).
    width : int
        Number of columns. Zero for an empty box.
    height : int
        Number of rows. Zero for an empty box.
    """

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_bounds(cls, bounds: Bounds) -> 'PixelBox':
        """Snap floating ``(minx, miny, maxx, maxy)`` bounds outward to
        the smallest enclosing integer rectangle.

        Parameters
        ----------
        bounds : Tuple[float, float, float, float]
            ``(minx, miny, maxx, maxy)`` in pixel coordinates.

        Returns
        -------
        PixelBox
        """
        minx, miny, maxx, maxy = bounds
        x0 = math.floor(minx + _SNAP_TOLERANCE)
        y0 = math.floor(miny + _SNAP_TOLERANCE)
        x1 = math.ceil(maxx - _SNAP_TOLERANCE)
        y1 = math.ceil(maxy - _SNAP_TOLERANCE)
        return cls(x0, y0, max(0, x1 - x0), max(0, y1 - y0))

    @property
    def bounds(self) -> Bounds:
        """``(minx, miny, maxx, maxy)`` of the rectangle."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def size(self) -> Tuple[int, int]:
        """``(width, height)`` of the rectangle."""
        return (self.width, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: 'PixelBox') -> 'PixelBox':
        """Intersect two boxes.

        Disjoint boxes produce a box with zero width or height rather
        than raising, so callers decide how to treat an empty overlap.
        """
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.x + self.width, other.x + other.width)
        y1 = min(self.y + self.height, other.y + other.height)
        return PixelBox(x0, y0, max(0, x1 - x0), max(0, y1 - y0))

    def translate(self, dx: int, dy: int) -> 'PixelBox':
        return PixelBox(self.x + dx, self.y + dy, self.width, self.height)

    def to_polygon(self) -> Polygon:
        """Rectangle as a shapely ``Polygon`` in ``(col, row)`` order."""
        return box(*self.bounds)


class GeoBox(NamedTuple):
    """Bounding box in WGS84 degrees.

    Attributes
    ----------
    west : float
        Minimum longitude.
    south : float
        Minimum latitude.
    east : float
        Maximum longitude.
    north : float
        Maximum latitude.
    """

    west: float
    south: float
    east: float
    north: float

    @property
    def bounds(self) -> Bounds:
        return (self.west, self.south, self.east, self.north)

    def to_polygon(self) -> Polygon:
        return box(*self.bounds)

    def __str__(self) -> str:
        return (
            f"({self.south:.6f}, {self.west:.6f}) : "
            f"({self.north:.6f}, {self.east:.6f})"
        )
