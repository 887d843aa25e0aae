# -*- coding: utf-8 -*-
"""
Spatial Reference - Geographic anchoring of images and vector layers.

A ``SpatialReference`` is either ``LOCAL`` (pixel or engineering
coordinates with no geographic anchoring) or a pyproj CRS. Two references
are compatible only if both are local or both are CRS-anchored.

Dependencies
------------
pyproj

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
2026-03-05
"""

# Standard library
from typing import Any, Optional

# Third-party
import pyproj

# geodetect internal
from geodetect.exceptions import GeolocationError
from geodetect.geolocation.transforms import CrsTransformation


class SpatialReference:
    """Optional coordinate reference system.

    Parameters
    ----------
    crs : pyproj.CRS, str, int or None
        Anything ``pyproj.CRS.from_user_input`` accepts. ``None`` creates a
        local (unanchored) reference.

    Examples
    --------
    >>> SpatialReference('EPSG:32755').is_local
    False
    >>> LOCAL.is_local
    True
    """

    def __init__(self, crs: Any = None) -> None:
        self._crs: Optional[pyproj.CRS] = (
            pyproj.CRS.from_user_input(crs) if crs is not None else None
        )

    @classmethod
    def from_rasterio(cls, crs: Any) -> 'SpatialReference':
        """Build from a rasterio ``CRS`` (or ``None``).

        Rasters without a CRS, or with an empty one, are local.
        """
        if crs is None or not crs:
            return cls()
        return cls(crs.to_wkt())

    @property
    def crs(self) -> Optional[pyproj.CRS]:
        return self._crs

    @property
    def is_local(self) -> bool:
        return self._crs is None

    @property
    def name(self) -> str:
        if self._crs is None:
            return "LOCAL"
        return self._crs.to_string()

    def is_compatible(self, other: 'SpatialReference') -> bool:
        """True when both references are local or both are anchored."""
        return self.is_local == other.is_local

    def from_(self, other: 'SpatialReference') -> CrsTransformation:
        """Transform from *other* into this reference."""
        self._require_crs("convert into")
        other._require_crs("convert from")
        return CrsTransformation(other.crs, self._crs)

    def from_latlon(self) -> CrsTransformation:
        """Transform from WGS84 ``(lon, lat)`` into this reference."""
        return self.from_(WGS84)

    def to_latlon(self) -> CrsTransformation:
        """Transform from this reference into WGS84 ``(lon, lat)``."""
        return WGS84.from_(self)

    def _require_crs(self, action: str) -> None:
        if self._crs is None:
            raise GeolocationError(
                f"Cannot {action} a local spatial reference: it has no "
                f"geographic anchoring"
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SpatialReference):
            return NotImplemented
        if self.is_local or other.is_local:
            return self.is_local and other.is_local
        return self._crs == other._crs

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"SpatialReference({self.name!r})"


LOCAL = SpatialReference()
WGS84 = SpatialReference('EPSG:4326')
