# -*- coding: utf-8 -*-
"""
IO Base Classes - Raster description and the reader interface.

``RasterInfo`` is the immutable summary the coordinate transform manager
needs from any raster, whether it is a local file or the mosaic of tiles a
map service exposes for an area: pixel size, pixel-to-map affine transform,
spatial reference and per-band color interpretation.

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
2026-03-05
"""

# Standard library
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

# Third-party
import numpy as np
from rasterio.transform import Affine

# geodetect internal
from geodetect.geolocation.box import PixelBox
from geodetect.geolocation.spatial_reference import SpatialReference

ALPHA = 'alpha'


def has_alpha(color_interps: Sequence[str]) -> bool:
    """True when any band is interpreted as alpha.

    Parameters
    ----------
    color_interps : Sequence[str]
        Lower-case color interpretation names, one per band
        (``'red'``, ``'green'``, ``'blue'``, ``'alpha'``, ``'gray'``, ...).
    """
    return any(ci.lower() == ALPHA for ci in color_interps)


@dataclass(frozen=True)
class RasterInfo:
    """Immutable description of a raster.

    Attributes
    ----------
    size : Tuple[int, int]
        ``(width, height)`` in pixels.
    transform : rasterio.transform.Affine
        Pixel ``(col, row)`` to native map ``(x, y)``.
    spatial_reference : SpatialReference
        Native CRS, or ``LOCAL`` for unanchored imagery.
    color_interps : Tuple[str, ...]
        Lower-case color interpretation per band.
    dtype : str
        Pixel data type name.
    """

    size: Tuple[int, int]
    transform: Affine
    spatial_reference: SpatialReference
    color_interps: Tuple[str, ...] = ('red', 'green', 'blue')
    dtype: str = 'uint8'

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    @property
    def band_count(self) -> int:
        return len(self.color_interps)

    @property
    def have_alpha(self) -> bool:
        return has_alpha(self.color_interps)

    @property
    def extent(self) -> PixelBox:
        """The full image rectangle in pixel space."""
        return PixelBox(0, 0, self.width, self.height)


class RasterReader(ABC):
    """
    Abstract base class for raster readers.

    Attributes
    ----------
    filepath : Path
        Path to the image file.
    info : RasterInfo
        Raster description, populated by ``_load_metadata``.
    """

    def __init__(self, filepath: Union[str, Path]) -> None:
        """
        Initialize the reader.

        Parameters
        ----------
        filepath : Union[str, Path]
            Path to the image file.

        Raises
        ------
        FileNotFoundError
            If the specified filepath does not exist.
        """
        self.filepath = Path(filepath)
        if not self.filepath.exists():
            raise FileNotFoundError(f"File not found: {self.filepath}")
        self.info: Optional[RasterInfo] = None
        self._load_metadata()

    @abstractmethod
    def _load_metadata(self) -> None:
        """Populate ``self.info`` from the file."""
        pass

    @abstractmethod
    def read_chip(self, region: PixelBox) -> np.ndarray:
        """
        Read a spatial subset of every band.

        Parameters
        ----------
        region : PixelBox
            Rectangle to read. Must lie within the image.

        Returns
        -------
        np.ndarray
            Shape ``(bands, rows, cols)``.
        """
        pass

    def close(self) -> None:
        """Release resources. Default implementation does nothing."""
        pass

    def __enter__(self) -> 'RasterReader':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
