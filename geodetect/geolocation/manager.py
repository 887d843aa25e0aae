# -*- coding: utf-8 -*-
"""
Coordinate Transform Manager - Pixel, projected and geographic space.

Establishes, once per run, how pixel coordinates of the source image relate
to the image's native projected space and to WGS84, and reconciles a
user-supplied geographic bounding box with the image extent. The results
are bundled in an immutable ``GeoContext`` read by every downstream stage.

Coordinate flow for a CRS-anchored image::

    pixel (col, row)  --pixel_to_proj-->  native CRS  --to_latlon-->  WGS84 (lon, lat)

    pixel_to_ll = (from_latlon o pixel_to_proj^-1)^-1

Images without geographic anchoring keep their output in native space. A
geographic bounding box cannot be mapped onto such an image, so by default
it is ignored with a warning.

Dependencies
------------
rasterio
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
2026-03-03

Modified
--------
2026-03-12
"""

# Standard library
import logging
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

# geodetect internal
from geodetect.IO.base import RasterInfo
from geodetect.exceptions import (
    ConfigurationError,
    CrsMismatchError,
    NoIntersectionError,
)
from geodetect.geolocation.box import Bounds, GeoBox, PixelBox
from geodetect.geolocation.spatial_reference import WGS84, SpatialReference
from geodetect.geolocation.transforms import (
    AffineTransformation,
    TransformationChain,
)

if TYPE_CHECKING:
    from geodetect.IO.map_service import MapServiceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoContext:
    """Immutable coordinate products of image initialization.

    Attributes
    ----------
    image_size : Tuple[int, int]
        ``(width, height)`` of the source raster in pixels.
    bbox : PixelBox
        Area of interest in pixel space, within the image extent.
    pixel_to_proj : AffineTransformation
        Pixel to native projected coordinates.
    pixel_to_ll : TransformationChain
        Pixel to output coordinates: WGS84 for anchored images, native
        space for local ones.
    image_sr : SpatialReference
        Native reference of the image.
    output_sr : SpatialReference
        ``WGS84`` for anchored images, ``LOCAL`` otherwise.
    have_alpha : bool
        Whether the raster carries an alpha band.
    color_interps : Tuple[str, ...]
        Lower-case color interpretation per band.
    dtype : str
        Pixel data type name.
    adjusted_bbox : GeoBox, optional
        The clipped area of interest in output space, set only when the
        requested bounding box had to be reduced to fit the image.
    service_area : Tuple[float, float, float, float], optional
        Projected area requested from a map service.
    """

    image_size: tuple
    bbox: PixelBox
    pixel_to_proj: AffineTransformation
    pixel_to_ll: TransformationChain
    image_sr: SpatialReference
    output_sr: SpatialReference
    have_alpha: bool
    color_interps: tuple = ('red', 'green', 'blue')
    dtype: str = 'uint8'
    adjusted_bbox: Optional[GeoBox] = None
    service_area: Optional[Bounds] = None

    @property
    def extent(self) -> PixelBox:
        return PixelBox(0, 0, self.image_size[0], self.image_size[1])


class CoordinateTransformManager:
    """Build a ``GeoContext`` for a local raster or a map service.

    Parameters
    ----------
    strict_bbox : bool, default=False
        When the image has no geographic anchoring, a geographic bounding
        box implies a conversion that does not exist. By default the box
        is ignored with a warning; with ``strict_bbox`` the run fails with
        ``CrsMismatchError`` instead.

    Examples
    --------
    >>> manager = CoordinateTransformManager()
    >>> with GeoTIFFReader('image.tif') as reader:
    ...     geo = manager.from_raster(reader.info, GeoBox(115.0, -31.1, 115.1, -31.0))
    >>> geo.bbox
    PixelBox(x=..., y=..., width=..., height=...)
    """

    def __init__(self, strict_bbox: bool = False) -> None:
        self.strict_bbox = strict_bbox

    def from_raster(
        self,
        info: RasterInfo,
        bbox: Optional[GeoBox] = None,
    ) -> GeoContext:
        """Coordinate context for a local raster.

        Parameters
        ----------
        info : RasterInfo
            Raster size, transform, reference and bands.
        bbox : GeoBox, optional
            Requested area of interest in WGS84.

        Returns
        -------
        GeoContext

        Raises
        ------
        NoIntersectionError
            If *bbox* does not overlap the image.
        CrsMismatchError
            If *bbox* is given for an unanchored image and
            ``strict_bbox`` is set.
        """
        pixel_to_proj = AffineTransformation(info.transform)
        image_sr = info.spatial_reference
        ignore_bbox = False

        if not image_sr.is_local:
            ll_to_pixel = TransformationChain([
                image_sr.from_latlon(),
                pixel_to_proj.inverse(),
            ])
            output_sr = WGS84
        else:
            logger.warning(
                "Image has geometric metadata which cannot be converted to "
                "WGS84. Output will be in native space, and some output "
                "formats will fail."
            )
            if bbox is not None:
                if self.strict_bbox:
                    raise CrsMismatchError(
                        "A bounding box was supplied but the input image has "
                        "no spatial reference to convert it to pixel space"
                    )
                logger.warning(
                    "Supplying a bounding box implicitly requests a "
                    "conversion from WGS84 to pixel space, but there is no "
                    "such conversion for this image. Ignoring the "
                    "user-supplied bounding box."
                )
                ignore_bbox = True
            ll_to_pixel = TransformationChain([pixel_to_proj.inverse()])
            output_sr = image_sr

        pixel_to_ll = ll_to_pixel.inverse()
        extent = info.extent
        pixel_bbox, adjusted = extent, None
        if bbox is not None and not ignore_bbox:
            pixel_bbox, adjusted = self._reconcile_bbox(
                bbox, extent, ll_to_pixel, pixel_to_ll
            )

        return GeoContext(
            image_size=info.size,
            bbox=pixel_bbox,
            pixel_to_proj=pixel_to_proj,
            pixel_to_ll=pixel_to_ll,
            image_sr=image_sr,
            output_sr=output_sr,
            have_alpha=info.have_alpha,
            color_interps=info.color_interps,
            dtype=info.dtype,
            adjusted_bbox=adjusted,
        )

    def from_map_service(
        self,
        client: 'MapServiceClient',
        bbox: Optional[GeoBox],
    ) -> GeoContext:
        """Coordinate context for a remote tile service.

        The projected-to-geographic transform comes from the service's
        spatial reference, and the image extent is the tile coverage the
        service reports for the requested area.

        Raises
        ------
        ConfigurationError
            If no bounding box is given.
        NoIntersectionError
            If the area falls outside the service coverage.
        """
        if bbox is None:
            raise ConfigurationError(
                "A bounding box must be specified for map service sources"
            )

        ll_to_proj = client.spatial_reference.from_latlon()
        proj_bbox = ll_to_proj.transform_bounds(bbox.bounds)
        info = client.image_from_area(proj_bbox)

        pixel_to_proj = AffineTransformation(info.transform)
        proj_to_pixel = pixel_to_proj.inverse()
        requested = proj_to_pixel.transform_to_int(proj_bbox)
        pixel_bbox = info.extent.intersection(requested)
        if pixel_bbox.is_empty:
            raise NoIntersectionError(
                f"Bounding box {bbox} is outside the map service coverage"
            )

        pixel_to_ll = TransformationChain([ll_to_proj, proj_to_pixel]).inverse()
        return GeoContext(
            image_size=info.size,
            bbox=pixel_bbox,
            pixel_to_proj=pixel_to_proj,
            pixel_to_ll=pixel_to_ll,
            image_sr=info.spatial_reference,
            output_sr=WGS84,
            have_alpha=info.have_alpha,
            color_interps=info.color_interps,
            dtype=info.dtype,
            service_area=proj_bbox,
        )

    @staticmethod
    def _reconcile_bbox(
        bbox: GeoBox,
        extent: PixelBox,
        ll_to_pixel: TransformationChain,
        pixel_to_ll: TransformationChain,
    ):
        requested = ll_to_pixel.transform_to_int(bbox.bounds)
        intersect = extent.intersection(requested)
        if intersect.is_empty:
            raise NoIntersectionError(
                f"Input image and the provided bounding box {bbox} do not "
                f"intersect"
            )

        adjusted = None
        if intersect != requested:
            adjusted = GeoBox(*pixel_to_ll.transform_bounds(intersect.bounds))
            logger.info("Bounding box adjusted to %s", adjusted)
        return intersect, adjusted
