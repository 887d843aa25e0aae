# -*- coding: utf-8 -*-
"""
GeoTIFF Reader - Local raster access through rasterio.

Reads GeoTIFFs, Cloud-Optimized GeoTIFFs and any other GDAL-readable raster.
Rasters without a CRS are reported with a ``LOCAL`` spatial reference so the
coordinate transform manager can fall back to native pixel space.

Dependencies
------------
rasterio

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
from pathlib import Path
from typing import Union

# Third-party
import numpy as np
import rasterio
from rasterio.windows import Window

# geodetect internal
from geodetect.IO.base import RasterInfo, RasterReader
from geodetect.geolocation.box import PixelBox
from geodetect.geolocation.spatial_reference import SpatialReference


class GeoTIFFReader(RasterReader):
    """Read a local raster with rasterio (GDAL).

    Parameters
    ----------
    filepath : str or Path
        Path to the raster file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file cannot be opened as a raster.

    Examples
    --------
    >>> from geodetect.IO.geotiff import GeoTIFFReader
    >>> with GeoTIFFReader('image.tif') as reader:
    ...     chip = reader.read_chip(PixelBox(0, 0, 512, 512))
    ...     print(reader.info.spatial_reference)
    """

    def __init__(self, filepath: Union[str, Path]) -> None:
        self.dataset = None
        super().__init__(filepath)

    def _load_metadata(self) -> None:
        """Load raster metadata using rasterio."""
        try:
            self.dataset = rasterio.open(str(self.filepath))
        except Exception as e:
            raise ValueError(
                f"Failed to open raster {self.filepath}: {e}"
            ) from e

        self.info = RasterInfo(
            size=(self.dataset.width, self.dataset.height),
            transform=self.dataset.transform,
            spatial_reference=SpatialReference.from_rasterio(self.dataset.crs),
            color_interps=tuple(ci.name.lower() for ci in self.dataset.colorinterp),
            dtype=str(self.dataset.dtypes[0]),
        )

    def read_chip(self, region: PixelBox) -> np.ndarray:
        """Read every band inside *region*.

        Raises
        ------
        ValueError
            If the region falls outside the image.
        """
        width, height = self.info.size
        x0, y0, x1, y1 = region.bounds
        if x0 < 0 or y0 < 0:
            raise ValueError("Start indices must be non-negative")
        if x1 > width or y1 > height:
            raise ValueError("End indices exceed image dimensions")

        window = Window(region.x, region.y, region.width, region.height)
        return self.dataset.read(window=window)

    def close(self) -> None:
        """Close the rasterio dataset."""
        if self.dataset is not None:
            self.dataset.close()
            self.dataset = None
