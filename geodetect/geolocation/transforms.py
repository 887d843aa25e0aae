# -*- coding: utf-8 -*-
"""
Transformations - Invertible coordinate transforms and transform chains.

Provides the building blocks used to move geometry between pixel space,
an image's native projected space and WGS84 geographic space:

- ``AffineTransformation`` wraps a six-parameter rasterio ``Affine``
  (pixel ``(col, row)`` to map ``(x, y)``).
- ``CrsTransformation`` wraps a pair of pyproj ``Transformer`` objects
  between two coordinate reference systems.
- ``TransformationChain`` composes any number of transforms. Its forward
  operation applies each member in order; its inverse applies each
  member's inverse in reverse order, so ``chain.inverse().inverse()``
  behaves exactly like ``chain``.

Coordinate flow for a geocoded raster::

    pixel (col, row)  --affine-->  native CRS (x, y)  --pyproj-->  WGS84 (lon, lat)

All transforms operate on ``(x, y)`` pairs. Geographic coordinates are
``(lon, lat)`` because every pyproj transformer is built with
``always_xy=True``.

Dependencies
------------
rasterio
pyproj
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
2026-03-02

Modified
--------
2026-03-10
"""

# Standard library
from abc import ABC, abstractmethod
from typing import Any, Iterator, List, Sequence, Tuple, Union

# Third-party
import numpy as np
import pyproj
from rasterio.transform import Affine
from shapely.ops import transform as shapely_transform

# geodetect internal
from geodetect.geolocation.box import Bounds, PixelBox


def _is_scalar(val: Any) -> bool:
    """Check if a value is a scalar (not array-like)."""
    if isinstance(val, np.ndarray):
        return val.ndim == 0
    return isinstance(val, (int, float, np.integer, np.floating))


class Transformation(ABC):
    """Abstract invertible transform between two 2D coordinate spaces.

    Subclasses implement ``_transform_arrays`` on 1D float64 arrays and
    ``inverse``. The public methods handle scalar/array dispatch, bounds,
    integer pixel boxes and shapely geometries.
    """

    @abstractmethod
    def _transform_arrays(
        self, xs: np.ndarray, ys: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Transform coordinate arrays.

        Parameters
        ----------
        xs : np.ndarray
            X coordinates (1D array, float64).
        ys : np.ndarray
            Y coordinates (1D array, float64).

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            Transformed ``(xs, ys)``.
        """
        ...

    @abstractmethod
    def inverse(self) -> 'Transformation':
        """Return the transform mapping outputs back to inputs."""
        ...

    @property
    def is_identity(self) -> bool:
        return False

    def transform(
        self,
        x: Union[float, Sequence[float], np.ndarray],
        y: Union[float, Sequence[float], np.ndarray],
    ) -> Union[Tuple[float, float], Tuple[np.ndarray, np.ndarray]]:
        """Transform a point or arrays of points.

        Parameters
        ----------
        x : float, list or np.ndarray
            X coordinate(s).
        y : float, list or np.ndarray
            Y coordinate(s).

        Returns
        -------
        Tuple[float, float]
            When scalar inputs are given.
        Tuple[np.ndarray, np.ndarray]
            When array or list inputs are given.
        """
        scalar = _is_scalar(x) and _is_scalar(y)
        xs = np.atleast_1d(np.asarray(x, dtype=np.float64))
        ys = np.atleast_1d(np.asarray(y, dtype=np.float64))
        out_x, out_y = self._transform_arrays(xs, ys)
        if scalar:
            return float(out_x[0]), float(out_y[0])
        return np.asarray(out_x), np.asarray(out_y)

    def transform_bounds(self, bounds: Bounds, densify: int = 21) -> Bounds:
        """Transform a rectangle and return the bounds of the result.

        The rectangle edges are sampled at ``densify`` points each so that
        curved edges produced by a reprojection are enclosed.

        Parameters
        ----------
        bounds : Tuple[float, float, float, float]
            ``(minx, miny, maxx, maxy)`` in the input space.
        densify : int, default=21
            Samples per edge, corners included.

        Returns
        -------
        Tuple[float, float, float, float]
            ``(minx, miny, maxx, maxy)`` in the output space.
        """
        minx, miny, maxx, maxy = bounds
        n = max(2, int(densify))
        t = np.linspace(0.0, 1.0, n)
        edge_x = minx + t * (maxx - minx)
        edge_y = miny + t * (maxy - miny)
        xs = np.concatenate([
            edge_x, edge_x, np.full(n, minx), np.full(n, maxx),
        ])
        ys = np.concatenate([
            np.full(n, miny), np.full(n, maxy), edge_y, edge_y,
        ])
        out_x, out_y = self._transform_arrays(xs, ys)
        return (
            float(np.min(out_x)), float(np.min(out_y)),
            float(np.max(out_x)), float(np.max(out_y)),
        )

    def transform_to_int(self, bounds: Bounds) -> PixelBox:
        """Transform a rectangle into an enclosing integer pixel box."""
        return PixelBox.from_bounds(self.transform_bounds(bounds))

    def transform_geometry(self, geometry):
        """Transform a shapely geometry of any type.

        Parameters
        ----------
        geometry : shapely.geometry.base.BaseGeometry
            Geometry in the input space.

        Returns
        -------
        shapely.geometry.base.BaseGeometry
            New geometry of the same type in the output space.
        """
        def _apply(xs, ys, zs=None):
            out_x, out_y = self._transform_arrays(
                np.asarray(xs, dtype=np.float64),
                np.asarray(ys, dtype=np.float64),
            )
            return out_x, out_y

        return shapely_transform(_apply, geometry)


class IdentityTransformation(Transformation):
    """Transform that returns its input unchanged."""

    def _transform_arrays(self, xs, ys):
        return xs, ys

    def inverse(self) -> 'IdentityTransformation':
        return self

    @property
    def is_identity(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "IdentityTransformation()"


class AffineTransformation(Transformation):
    """Six-parameter affine transform from pixel to map coordinates.

    The affine transform maps pixel ``(col, row)`` to map ``(x, y)`` as::

        x = c + col * a + row * b
        y = f + col * d + row * e

    Parameters
    ----------
    affine : rasterio.transform.Affine
        Pixel-to-map transform, typically ``dataset.transform``.

    Raises
    ------
    TypeError
        If *affine* is not a ``rasterio.transform.Affine`` instance.
    """

    def __init__(self, affine: Affine) -> None:
        if not isinstance(affine, Affine):
            raise TypeError(
                f"affine must be a rasterio.transform.Affine instance, "
                f"got {type(affine).__name__}"
            )
        self._affine = affine

    @property
    def affine(self) -> Affine:
        return self._affine

    @property
    def is_identity(self) -> bool:
        return self._affine.is_identity

    def _transform_arrays(self, xs, ys):
        a, b, c, d, e, f = (float(v) for v in self._affine[:6])
        return c + xs * a + ys * b, f + xs * d + ys * e

    def inverse(self) -> 'AffineTransformation':
        return AffineTransformation(~self._affine)

    def then(self, other: 'AffineTransformation') -> 'AffineTransformation':
        """Affine equal to applying ``self`` and then ``other``."""
        return AffineTransformation(other.affine * self._affine)

    def __repr__(self) -> str:
        return f"AffineTransformation({tuple(self._affine[:6])})"


class CrsTransformation(Transformation):
    """Reprojection between two coordinate reference systems.

    Parameters
    ----------
    source : pyproj.CRS or str
        Input CRS.
    target : pyproj.CRS or str
        Output CRS.
    """

    def __init__(self, source: Any, target: Any) -> None:
        self._source = pyproj.CRS.from_user_input(source)
        self._target = pyproj.CRS.from_user_input(target)
        self._same = self._source == self._target
        self._transformer = None
        if not self._same:
            self._transformer = pyproj.Transformer.from_crs(
                self._source, self._target, always_xy=True
            )

    @property
    def source(self) -> pyproj.CRS:
        return self._source

    @property
    def target(self) -> pyproj.CRS:
        return self._target

    @property
    def is_identity(self) -> bool:
        return self._same

    def _transform_arrays(self, xs, ys):
        if self._same:
            return xs, ys
        out_x, out_y = self._transformer.transform(xs, ys)
        return np.asarray(out_x, dtype=np.float64), np.asarray(out_y, dtype=np.float64)

    def inverse(self) -> 'CrsTransformation':
        return CrsTransformation(self._target, self._source)

    def __repr__(self) -> str:
        return (
            f"CrsTransformation({self._source.to_string()!r} -> "
            f"{self._target.to_string()!r})"
        )


class TransformationChain(Transformation):
    """Ordered composition of transforms.

    The chain is immutable: ``append`` and ``compact`` return new chains.

    Parameters
    ----------
    transforms : Sequence[Transformation], optional
        Members applied first to last. Nested chains are flattened.

    Examples
    --------
    >>> ll_to_pixel = TransformationChain([
    ...     image_sr.from_latlon(), pixel_to_proj.inverse(),
    ... ])
    >>> pixel_to_ll = ll_to_pixel.inverse()
    >>> lon, lat = pixel_to_ll.transform(0, 0)
    """

    def __init__(self, transforms: Sequence[Transformation] = ()) -> None:
        flat: List[Transformation] = []
        for t in transforms:
            if isinstance(t, TransformationChain):
                flat.extend(t)
            elif isinstance(t, Transformation):
                flat.append(t)
            else:
                raise TypeError(
                    f"Chain members must be Transformation instances, "
                    f"got {type(t).__name__}"
                )
        self._transforms: Tuple[Transformation, ...] = tuple(flat)

    def __len__(self) -> int:
        return len(self._transforms)

    def __iter__(self) -> Iterator[Transformation]:
        return iter(self._transforms)

    def __getitem__(self, index: int) -> Transformation:
        return self._transforms[index]

    @property
    def is_identity(self) -> bool:
        return all(t.is_identity for t in self._transforms)

    def _transform_arrays(self, xs, ys):
        for t in self._transforms:
            xs, ys = t._transform_arrays(xs, ys)
        return xs, ys

    def inverse(self) -> 'TransformationChain':
        return TransformationChain(
            [t.inverse() for t in reversed(self._transforms)]
        )

    def append(self, *transforms: Transformation) -> 'TransformationChain':
        """New chain with *transforms* applied after the current members."""
        return TransformationChain([*self._transforms, *transforms])

    def compact(self) -> 'TransformationChain':
        """Equivalent chain with identities dropped and adjacent affine
        transforms folded into one."""
        members: List[Transformation] = []
        for t in self._transforms:
            if t.is_identity:
                continue
            if (
                members
                and isinstance(t, AffineTransformation)
                and isinstance(members[-1], AffineTransformation)
            ):
                folded = members.pop().then(t)
                if not folded.is_identity:
                    members.append(folded)
                continue
            members.append(t)
        return TransformationChain(members)

    def __repr__(self) -> str:
        return f"TransformationChain({list(self._transforms)!r})"
