# -*- coding: utf-8 -*-
"""
Raster to Polygon - Outline extraction from segmentation masks.

Thresholds a probability mask, splits it into connected components and
traces each component's outline. Outlines are optionally simplified with
Douglas-Peucker and filtered by area.

Dependencies
------------
scikit-image
shapely

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
2026-03-05
"""

# Standard library
from typing import List, Tuple

# Third-party
import numpy as np
from shapely.geometry import Polygon
from skimage.measure import find_contours, label

_METHODS = ('simple', 'dp')


class RasterToPolygon:
    """Convert a probability mask into scored polygons.

    Parameters
    ----------
    method : str
        ``'dp'`` simplifies outlines with Douglas-Peucker; ``'simple'``
        keeps every contour vertex.
    epsilon : float
        Douglas-Peucker tolerance in pixels.
    min_area : float
        Polygons smaller than this (square pixels) are dropped.

    Raises
    ------
    ValueError
        If *method* is unknown or *epsilon*/*min_area* are negative.
    """

    def __init__(
        self,
        method: str = 'dp',
        epsilon: float = 3.0,
        min_area: float = 0.0,
    ) -> None:
        if method not in _METHODS:
            raise ValueError(
                f"method must be one of {_METHODS}, got {method!r}"
            )
        if epsilon < 0 or min_area < 0:
            raise ValueError("epsilon and min_area must be non-negative")
        self.method = method
        self.epsilon = epsilon
        self.min_area = min_area

    def convert(
        self, probability: np.ndarray, threshold: float
    ) -> List[Tuple[Polygon, float]]:
        """
        Outline every connected region at or above *threshold*.

        Parameters
        ----------
        probability : np.ndarray
            2D mask of per-pixel probabilities.
        threshold : float
            Minimum probability for a pixel to belong to an object.

        Returns
        -------
        List[Tuple[Polygon, float]]
            ``(polygon, score)`` pairs in ``(col, row)`` pixel coordinates.
            The score is the mean probability inside the region.
        """
        components = label(probability >= threshold, connectivity=2)
        results = []
        for index in range(1, int(components.max()) + 1):
            region = components == index
            # Pad so regions touching the border still close.
            contours = find_contours(np.pad(region, 1).astype(float), 0.5)
            if not contours:
                continue
            outline = max(contours, key=len)
            if len(outline) < 4:
                continue
            # find_contours yields (row, col); undo the padding offset.
            polygon = Polygon(outline[:, ::-1] - 1.0)
            if self.method == 'dp' and self.epsilon > 0:
                polygon = polygon.simplify(self.epsilon, preserve_topology=True)
            if not polygon.is_valid:
                polygon = polygon.buffer(0)
            if polygon.is_empty or polygon.area < self.min_area:
                continue
            if polygon.geom_type != 'Polygon':
                polygon = max(polygon.geoms, key=lambda g: g.area)
            results.append((polygon, float(probability[region].mean())))
        return results
