# -*- coding: utf-8 -*-
"""
Run Configuration - Everything a detection run needs, loaded from YAML.

A run is described by one YAML document mirroring the ``RunConfig``
fields. Enum-valued settings are given by their value (``source: dgcs``,
``output_format: gpkg``), the bounding box as ``[west, south, east,
north]`` in WGS84 degrees and filter definitions as a list of
``{action: include|exclude, files: [...]}`` mappings.

Example
-------
::

    source: local
    image: scene.tif
    bbox: [115.80, -32.00, 115.90, -31.90]
    model: my_models.ships:load
    window_sizes: [150, 200]
    window_steps: [50]
    confidence: 90
    nms: true
    output: ships.gpkg
    output_format: gpkg
    filters:
      - action: exclude
        files: [land.geojson]

Credentials that are not given explicitly are taken from the shared
``~/.config/geoint/credentials.json`` file (``geodetect`` block) and then
from the ``GEODETECT_CREDENTIALS`` and ``GEODETECT_TOKEN`` environment
variables.

Dependencies
------------
pyyaml

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
2026-03-11

Modified
--------
2026-03-15
"""

# Standard library
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

# Third-party
import yaml

# geodetect internal
from geodetect.exceptions import ConfigurationError, MissingInputSourceError
from geodetect.geolocation.box import GeoBox
from geodetect.vocabulary import (
    GeometryType,
    OutputFormat,
    RegionFilterMethod,
    SourceKind,
)

logger = logging.getLogger(__name__)

# Shared across geoint projects.
_CREDENTIALS_PATH = Path.home() / ".config" / "geoint" / "credentials.json"


def load_credentials(
    credentials_file: Optional[Union[str, Path]] = None,
) -> Dict[str, str]:
    """
    Load ``credentials`` and ``token`` from the shared geoint config file.

    Falls back to the ``GEODETECT_CREDENTIALS`` and ``GEODETECT_TOKEN``
    environment variables for entries the file leaves empty.

    Parameters
    ----------
    credentials_file : Optional[Union[str, Path]], default=None
        Path to credentials JSON. If None, uses
        ``~/.config/geoint/credentials.json``.

    Returns
    -------
    Dict[str, str]
        Non-empty entries among ``credentials`` and ``token``.
    """
    cred_path = Path(credentials_file) if credentials_file else _CREDENTIALS_PATH

    found: Dict[str, str] = {}
    if cred_path.exists():
        with open(cred_path, 'r') as f:
            block = json.load(f).get('geodetect', {})
        found.update({k: v for k, v in block.items() if v})

    env = {
        'credentials': os.environ.get('GEODETECT_CREDENTIALS', ''),
        'token': os.environ.get('GEODETECT_TOKEN', ''),
    }
    for key, value in env.items():
        if value and key not in found:
            found[key] = value
    return found


@dataclass
class RunConfig:
    """
    Settings of one detection run.

    Percentages (``confidence``, ``overlap``) are given in [0, 100] as on
    the command line; nodes receive them as fractions.

    Attributes
    ----------
    source : SourceKind
        Where the imagery comes from.
    image : str, optional
        Local raster path, for ``SourceKind.LOCAL``.
    credentials : str, optional
        ``'user:password'`` for map services and the catalog.
    token : str, optional
        Service token (DGCS/EVWHS connect id, MapsAPI access token).
    map_id : str, optional
        MapsAPI map identifier.
    url : str, optional
        TileJSON document URL.
    zoom : int
        Map service zoom level.
    max_connections : int
        Concurrent tile downloads.
    bbox : GeoBox, optional
        Area of interest in WGS84.
    strict_bbox : bool
        Fail instead of ignoring a bbox the image cannot honor.
    max_cache_size : int
        Raster cache budget in bytes, 0 for no limit.
    model : str
        ``"package.module:factory"`` model reference.
    model_options : Dict[str, Any]
        Keyword arguments for the model factory.
    window_sizes, window_steps : List[int]
        Sliding window widths and step widths.
    resampled_size : int, optional
        Width each window is resampled to.
    batch_size : int
        Windows per model call.
    confidence : float
        Minimum score in percent.
    nms : bool
        Apply non-maximum suppression.
    overlap : float
        Suppression overlap threshold in percent.
    include_labels, exclude_labels : List[str]
        Label filter. Exclusion wins when both are set.
    filters : List[Tuple[str, List[str]]]
        Ordered region filter ``(action, files)`` definitions.
    filter_method : RegionFilterMethod
        Window test of the region filter.
    dgcs_catalog_id, evwhs_catalog_id : bool
        Cross-reference features with the DGCS or EVWHS catalog.
    wfs_credentials : str, optional
        Catalog credentials, defaults to ``credentials``.
    output : str
        Output vector file.
    output_format : OutputFormat
    layer_name : str
    geometry_type : GeometryType
    append : bool
        Append to an existing output layer.
    producer_info : bool
        Add ``username``, ``app`` and ``app_ver`` fields.
    extra_fields : List[str]
        Flat ``[name, value, name, value, ...]`` constant fields.
    polygonize : Dict[str, Any]
        ``RasterToPolygon`` options for segmentation models.
    quiet : bool
        No progress display.
    """

    model: str = ''
    output: str = ''
    source: SourceKind = SourceKind.LOCAL
    image: Optional[str] = None
    credentials: Optional[str] = None
    token: Optional[str] = None
    map_id: Optional[str] = None
    url: Optional[str] = None
    zoom: int = 18
    max_connections: int = 10
    bbox: Optional[GeoBox] = None
    strict_bbox: bool = False
    max_cache_size: int = 0
    model_options: Dict[str, Any] = field(default_factory=dict)
    window_sizes: List[int] = field(default_factory=list)
    window_steps: List[int] = field(default_factory=list)
    resampled_size: Optional[int] = None
    batch_size: int = 8
    confidence: float = 95.0
    nms: bool = False
    overlap: float = 30.0
    include_labels: List[str] = field(default_factory=list)
    exclude_labels: List[str] = field(default_factory=list)
    filters: List[Tuple[str, List[str]]] = field(default_factory=list)
    filter_method: RegionFilterMethod = RegionFilterMethod.ANY
    dgcs_catalog_id: bool = False
    evwhs_catalog_id: bool = False
    wfs_credentials: Optional[str] = None
    output_format: OutputFormat = OutputFormat.SHAPEFILE
    layer_name: str = 'geodetect'
    geometry_type: GeometryType = GeometryType.POLYGON
    append: bool = False
    producer_info: bool = False
    extra_fields: List[str] = field(default_factory=list)
    polygonize: Dict[str, Any] = field(default_factory=dict)
    quiet: bool = False

    def __post_init__(self) -> None:
        self.validate()

    @property
    def catalog_lookup(self) -> bool:
        return self.dgcs_catalog_id or self.evwhs_catalog_id

    @property
    def extra_field_pairs(self) -> Dict[str, str]:
        return dict(zip(self.extra_fields[0::2], self.extra_fields[1::2]))

    def validate(self) -> None:
        """Check settings that do not depend on the image or the model.

        Raises
        ------
        MissingInputSourceError
            If no image is given for a local source.
        ConfigurationError
            For any other inconsistent setting.
        """
        if self.source is SourceKind.LOCAL and not self.image:
            raise MissingInputSourceError("Input source not specified")
        if not self.model:
            raise ConfigurationError("A model reference must be specified")
        if not self.output:
            raise ConfigurationError("An output path must be specified")
        if len(self.extra_fields) % 2:
            raise ConfigurationError(
                f"Extra fields must be name/value pairs, got "
                f"{len(self.extra_fields)} values"
            )
        if self.dgcs_catalog_id and self.evwhs_catalog_id:
            raise ConfigurationError(
                "Only one of dgcs_catalog_id and evwhs_catalog_id can be set"
            )
        if not 0 <= self.confidence <= 100:
            raise ConfigurationError(
                f"Confidence must be in [0, 100], got {self.confidence}"
            )
        if not 0 <= self.overlap <= 100:
            raise ConfigurationError(
                f"Overlap must be in [0, 100], got {self.overlap}"
            )
        if self.max_cache_size < 0:
            raise ConfigurationError("max_cache_size must be non-negative")
        if self.include_labels and self.exclude_labels:
            logger.warning(
                "Both include and exclude labels given, only the exclude "
                "labels are applied"
            )

    def with_stored_credentials(
        self, credentials_file: Optional[Union[str, Path]] = None
    ) -> 'RunConfig':
        """Fill ``credentials`` and ``token`` from the credentials file
        and environment when they are not set."""
        if self.credentials and self.token:
            return self
        stored = load_credentials(credentials_file)
        if not self.credentials:
            self.credentials = stored.get('credentials')
        if not self.token:
            self.token = stored.get('token')
        return self

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'RunConfig':
        """Build from plain values, converting enums, bbox and filters.

        Raises
        ------
        ConfigurationError
            On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")

        values = dict(values)
        enums = {
            'source': SourceKind,
            'output_format': OutputFormat,
            'geometry_type': GeometryType,
            'filter_method': RegionFilterMethod,
        }
        try:
            for key, enum in enums.items():
                if key in values and not isinstance(values[key], enum):
                    values[key] = enum(str(values[key]).lower())
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        bbox = values.get('bbox')
        if bbox is not None and not isinstance(bbox, GeoBox):
            if len(bbox) != 4:
                raise ConfigurationError(
                    f"bbox must be [west, south, east, north], got {bbox}"
                )
            values['bbox'] = GeoBox(*(float(v) for v in bbox))

        if 'filters' in values:
            values['filters'] = [_filter_entry(entry) for entry in values['filters']]
        if 'extra_fields' in values:
            values['extra_fields'] = [str(v) for v in values['extra_fields']]
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'RunConfig':
        """Load a YAML run description.

        Relative image, output and filter paths are resolved against the
        YAML file's directory.
        """
        path = Path(path)
        with open(path, 'r') as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")

        base = path.parent
        for key in ('image', 'output'):
            if values.get(key):
                values[key] = str(base / values[key])
        for entry in values.get('filters', []) or []:
            if isinstance(entry, dict):
                entry['files'] = [str(base / f) for f in entry.get('files', [])]
        return cls.from_dict(values)


def _filter_entry(entry: Any) -> Tuple[str, List[str]]:
    if isinstance(entry, dict):
        if 'action' not in entry:
            raise ConfigurationError(f"Filter entry without an action: {entry}")
        return str(entry['action']), [str(f) for f in entry.get('files', [])]
    action, files = entry
    return str(action), [str(f) for f in files]
