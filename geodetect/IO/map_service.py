# -*- coding: utf-8 -*-
"""
Map Service Clients - Web-mercator tile services as raster sources.

A map service exposes imagery as a pyramid of 256-pixel tiles in
EPSG:3857. For a projected area of interest the client reports the
tile-aligned mosaic that covers it (``image_from_area``) and a
``TileServiceConfig`` the block source uses to fetch those tiles.

Supported services:

- **DGCS** and **EVWHS**: WMTS ``GetTile`` requests on the
  ``DigitalGlobe:ImageryTileService`` layer, ``image/jpeg``, tile matrix
  set ``EPSG:3857``. Requires a connect ID token and HTTP basic
  credentials.
- **MapsAPI**: ``{z}/{x}/{y}`` tiles addressed by map ID and access token.
- **TileJSON**: a TileJSON document whose first ``tiles`` template is used.

Dependencies
------------
requests
Pillow

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
2026-03-11
"""

# Standard library
import io
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

# Third-party
import numpy as np
import requests
from PIL import Image
from rasterio.transform import Affine

# geodetect internal
from geodetect.IO.base import RasterInfo
from geodetect.exceptions import ConfigurationError, MissingCredentialsError
from geodetect.geolocation.box import Bounds
from geodetect.geolocation.spatial_reference import SpatialReference
from geodetect.vocabulary import SourceKind

logger = logging.getLogger(__name__)

# Half the EPSG:3857 world width in meters.
WEB_MERCATOR_HALF_WIDTH = 20037508.342789244
TILE_SIZE = 256

_WMTS_TEMPLATE = (
    "https://{host}/earthservice/wmtsaccess?connectid={token}"
    "&SERVICE=WMTS&REQUEST=GetTile&VERSION=1.0.0"
    "&LAYER={layer}&STYLE=&FORMAT={image_format}"
    "&TILEMATRIXSET={matrix_set}&TILEMATRIX={matrix_set}:{{z}}"
    "&TILEROW={{y}}&TILECOL={{x}}"
)
_WMTS_HOSTS = {
    SourceKind.DGCS: "services.digitalglobe.com",
    SourceKind.EVWHS: "evwhs.digitalglobe.com",
}
_MAPS_API_TEMPLATE = (
    "https://api.mapbox.com/v4/{map_id}/{{z}}/{{x}}/{{y}}.jpg90"
    "?access_token={token}"
)


def split_credentials(credentials: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split ``'user:password'`` into an HTTP basic auth tuple."""
    if not credentials:
        return None
    user, sep, password = credentials.partition(':')
    if not sep:
        raise ConfigurationError(
            "Credentials must be given as 'username:password'"
        )
    return user, password


@dataclass(frozen=True)
class TileServiceConfig:
    """Everything a block source needs to fetch the tiles of an area.

    Attributes
    ----------
    url_template : str
        URL with ``{z}``, ``{x}`` and ``{y}`` placeholders.
    zoom : int
        Tile matrix level.
    col_range : Tuple[int, int]
        First and last tile column (inclusive).
    row_range : Tuple[int, int]
        First and last tile row (inclusive).
    auth : Tuple[str, str], optional
        HTTP basic credentials.
    tile_size : int
        Tile edge length in pixels.
    """

    url_template: str
    zoom: int
    col_range: Tuple[int, int]
    row_range: Tuple[int, int]
    auth: Optional[Tuple[str, str]] = None
    tile_size: int = TILE_SIZE

    @property
    def tile_count(self) -> int:
        return (
            (self.col_range[1] - self.col_range[0] + 1)
            * (self.row_range[1] - self.row_range[0] + 1)
        )

    def tile_url(self, col: int, row: int) -> str:
        return self.url_template.format(z=self.zoom, x=col, y=row)


class MapServiceClient:
    """Web-mercator XYZ tile service.

    Parameters
    ----------
    url_template : str, optional
        Tile URL template with ``{z}``, ``{x}``, ``{y}`` placeholders.
        May be left unset until ``connect()`` for services that discover
        it (TileJSON).
    zoom : int
        Zoom level.
    credentials : str, optional
        ``'user:password'`` for HTTP basic authentication.
    color_interps : Tuple[str, ...]
        Band interpretation of decoded tiles.
    timeout : float
        Request timeout in seconds.
    """

    def __init__(
        self,
        url_template: Optional[str] = None,
        zoom: int = 18,
        credentials: Optional[str] = None,
        color_interps: Tuple[str, ...] = ('red', 'green', 'blue'),
        timeout: float = 30.0,
    ) -> None:
        if zoom < 0:
            raise ConfigurationError(f"zoom must be non-negative, got {zoom}")
        self.url_template = url_template
        self.zoom = zoom
        self.auth = split_credentials(credentials)
        self.color_interps = tuple(color_interps)
        self.timeout = timeout
        self.spatial_reference = SpatialReference('EPSG:3857')
        self._session: Optional[requests.Session] = None

    @classmethod
    def for_source(
        cls,
        kind: SourceKind,
        zoom: int,
        token: Optional[str] = None,
        credentials: Optional[str] = None,
        map_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> 'MapServiceClient':
        """Build the client for a remote source kind.

        Raises
        ------
        MissingCredentialsError
            If a service requiring a token is configured without one.
        ConfigurationError
            If the source kind is local or required settings are missing.
        """
        if kind in _WMTS_HOSTS:
            if not token:
                raise MissingCredentialsError(
                    f"No token specified for {kind.value} map service"
                )
            template = _WMTS_TEMPLATE.format(
                host=_WMTS_HOSTS[kind],
                token=token,
                layer="DigitalGlobe:ImageryTileService",
                image_format="image/jpeg",
                matrix_set="EPSG:3857",
            )
            return cls(template, zoom=zoom, credentials=credentials)
        if kind is SourceKind.MAPS_API:
            if not token:
                raise MissingCredentialsError(
                    "No token specified for maps-api map service"
                )
            if not map_id:
                raise ConfigurationError("maps-api source requires a map ID")
            template = _MAPS_API_TEMPLATE.format(map_id=map_id, token=token)
            return cls(template, zoom=zoom)
        if kind is SourceKind.TILE_JSON:
            if not url:
                raise ConfigurationError("tile-json source requires a URL")
            return TileJsonClient(url, zoom=zoom, credentials=credentials)
        raise ConfigurationError(f"{kind.value} is not a map service source")

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.auth = self.auth
        return self._session

    def connect(self) -> None:
        """Resolve anything the service must discover before use."""
        if not self.url_template:
            raise ConfigurationError("Map service has no tile URL template")

    @property
    def resolution(self) -> float:
        """Ground size of one pixel at the configured zoom (meters)."""
        return 2.0 * WEB_MERCATOR_HALF_WIDTH / (TILE_SIZE * 2 ** self.zoom)

    def _tile_ranges(self, proj_bounds: Bounds) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        minx, miny, maxx, maxy = proj_bounds
        span = TILE_SIZE * self.resolution
        last = 2 ** self.zoom - 1

        def _clamp(v: int) -> int:
            return max(0, min(last, v))

        col0 = _clamp(math.floor((minx + WEB_MERCATOR_HALF_WIDTH) / span))
        col1 = _clamp(math.floor((maxx + WEB_MERCATOR_HALF_WIDTH) / span))
        row0 = _clamp(math.floor((WEB_MERCATOR_HALF_WIDTH - maxy) / span))
        row1 = _clamp(math.floor((WEB_MERCATOR_HALF_WIDTH - miny) / span))
        return (col0, col1), (row0, row1)

    def image_from_area(self, proj_bounds: Bounds) -> RasterInfo:
        """Describe the tile-aligned mosaic covering an EPSG:3857 area.

        Parameters
        ----------
        proj_bounds : Tuple[float, float, float, float]
            ``(minx, miny, maxx, maxy)`` in EPSG:3857 meters.

        Returns
        -------
        RasterInfo
            Mosaic size, pixel-to-projected transform and band layout.
        """
        (col0, col1), (row0, row1) = self._tile_ranges(proj_bounds)
        res = self.resolution
        span = TILE_SIZE * res
        transform = Affine(
            res, 0.0, -WEB_MERCATOR_HALF_WIDTH + col0 * span,
            0.0, -res, WEB_MERCATOR_HALF_WIDTH - row0 * span,
        )
        size = ((col1 - col0 + 1) * TILE_SIZE, (row1 - row0 + 1) * TILE_SIZE)
        return RasterInfo(
            size=size,
            transform=transform,
            spatial_reference=self.spatial_reference,
            color_interps=self.color_interps,
        )

    def config_from_area(self, proj_bounds: Bounds) -> TileServiceConfig:
        """Tile fetch configuration for the mosaic of ``image_from_area``."""
        col_range, row_range = self._tile_ranges(proj_bounds)
        return TileServiceConfig(
            url_template=self.url_template,
            zoom=self.zoom,
            col_range=col_range,
            row_range=row_range,
            auth=self.auth,
        )

    def fetch_tile(self, config: TileServiceConfig, col: int, row: int) -> np.ndarray:
        """Download and decode one tile.

        Returns
        -------
        np.ndarray
            Shape ``(bands, tile_size, tile_size)``.

        Raises
        ------
        requests.HTTPError
            If the service answers with an error status.
        """
        url = config.tile_url(col, row)
        logger.debug("Fetching tile %s", url)
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        mode = 'RGBA' if len(self.color_interps) == 4 else 'RGB'
        with Image.open(io.BytesIO(response.content)) as tile:
            pixels = np.asarray(tile.convert(mode))
        return np.moveaxis(pixels, -1, 0)


class TileJsonClient(MapServiceClient):
    """Map service described by a TileJSON document.

    Parameters
    ----------
    url : str
        Location of the TileJSON document.
    zoom : int
        Zoom level.
    credentials : str, optional
        ``'user:password'`` for HTTP basic authentication.
    """

    def __init__(self, url: str, zoom: int = 18, credentials: Optional[str] = None) -> None:
        super().__init__(None, zoom=zoom, credentials=credentials)
        self.document_url = url

    def connect(self) -> None:
        response = self.session.get(self.document_url, timeout=self.timeout)
        response.raise_for_status()
        document = response.json()
        tiles = document.get('tiles') or []
        if not tiles:
            raise ConfigurationError(
                f"TileJSON document {self.document_url} lists no tiles"
            )
        self.url_template = tiles[0]
        max_zoom = document.get('maxzoom')
        if max_zoom is not None and self.zoom > max_zoom:
            logger.warning(
                "Zoom %d exceeds the service maximum of %d",
                self.zoom, max_zoom,
            )
        super().connect()
