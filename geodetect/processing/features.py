# -*- coding: utf-8 -*-
"""
Feature Nodes - Predictions to attributed vector features on disk.

``PredictionToFeature`` maps prediction outlines from image pixels into the
image's native projected space and attaches the classification fields.
``WfsFeatureFieldExtractor`` optionally cross-references every feature with
a web feature service catalog. ``FileFeatureSink`` collects the features
and writes them with geopandas, reprojected to the output reference.

Fields written for every feature:

============  =======  =================================================
Name          Type     Content
============  =======  =================================================
top_cat       str(50)  Highest scoring label
top_score     float    Its score
date          date     Run date (UTC)
top_five      str(254) Top labels with scores
============  =======  =================================================

Producer info (``username``, ``app``, ``app_ver``), ``catalog_id`` and user
extra fields are appended when configured.

Dependencies
------------
requests
geopandas

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-03-10

Modified
--------
2026-03-18
"""

# Standard library
import json
import logging
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

# Third-party
import requests

# geodetect internal
from geodetect.IO.vector import remove_vector_file, write_features
from geodetect.geolocation.spatial_reference import SpatialReference
from geodetect.model.base import Prediction
from geodetect.processing.node import PortKind, SinkNode, TransformNode
from geodetect.vocabulary import GeometryType, OutputFormat

logger = logging.getLogger(__name__)

DGCS_WFS_URL = "https://services.digitalglobe.com/catalogservice/wfsaccess"
EVWHS_WFS_URL = "https://evwhs.digitalglobe.com/catalogservice/wfsaccess"
WFS_TYPENAME = "DigitalGlobe:FinishedFeature"
WEB_MERCATOR = SpatialReference('EPSG:3857')


class Feature(NamedTuple):
    """A detection ready to be written.

    Attributes
    ----------
    geometry : shapely.geometry.base.BaseGeometry
        Outline or point in the sink's input reference.
    fields : Dict[str, Any]
        Attribute values by field name.
    """

    geometry: Any
    fields: Dict[str, Any]


class FieldDefinition(NamedTuple):
    """Output attribute column.

    Attributes
    ----------
    name : str
    type : str
        ``'str'``, ``'float'`` or ``'date'``.
    width : int, optional
        Maximum length of string values.
    """

    name: str
    type: str = 'str'
    width: Optional[int] = None


def base_field_definitions() -> List[FieldDefinition]:
    return [
        FieldDefinition('top_cat', 'str', 50),
        FieldDefinition('top_score', 'float'),
        FieldDefinition('date', 'date'),
        FieldDefinition('top_five', 'str', 254),
    ]


def format_top_n(prediction: Prediction, n: int) -> str:
    """Top *n* labels as a JSON list of ``[label, score]`` pairs."""
    return json.dumps([[label, round(score, 6)] for label, score in prediction.top(n)])


class PredictionToFeature(TransformNode):
    """Turn predictions into features.

    Attributes
    ----------
    pixel_to_proj : Transformation
        Image pixels to native projected space.
    geometry_type : GeometryType
        ``POLYGON`` keeps outlines, ``POINT`` writes centroids.
    top_n_name : str
        Field holding the top labels, ``'top_five'``.
    top_n_categories : int
        Number of labels in that field.
    extra_fields : Dict[str, Any]
        Constant fields added to every feature.
    """

    INPUTS = {'predictions': PortKind.PREDICTIONS}
    OUTPUTS = {'features': PortKind.FEATURES}

    def process(self, items: Iterator[Prediction]) -> Iterator[Feature]:
        transform = self.attr('pixel_to_proj')
        as_point = self.attr('geometry_type', GeometryType.POLYGON) is GeometryType.POINT
        top_n_name = self.attr('top_n_name', 'top_five')
        top_n = int(self.attr('top_n_categories', 5))
        extra = dict(self.attr('extra_fields', {}))

        for prediction in items:
            geometry = transform.transform_geometry(prediction.polygon)
            if as_point:
                geometry = geometry.centroid
            fields = {
                'top_cat': prediction.top_label,
                'top_score': prediction.top_score,
                top_n_name: format_top_n(prediction, top_n),
            }
            fields.update(extra)
            yield Feature(geometry, fields)


class WfsFeatureFieldExtractor(TransformNode):
    """Look up catalog fields for each feature on a WFS 1.1.0 service.

    The feature's bounding box, in EPSG:3857, is sent as a ``getFeature``
    query. Fields of the first returned catalog record are copied onto the
    feature; when nothing is found the defaults are used.

    Attributes
    ----------
    url : str
        Service endpoint.
    query : Dict[str, str]
        Fixed query parameters (service, version, connectid, ...).
    auth : Tuple[str, str]
        HTTP basic credentials.
    input_spatial_reference : SpatialReference
        Reference of the incoming feature geometries.
    field_names : List[str]
        Catalog properties to copy.
    default_fields : Dict[str, Any]
        Values used when a property is missing.
    field_map : Dict[str, str], optional
        Output names of copied properties.
    timeout : float
    """

    INPUTS = {'features': PortKind.FEATURES}
    OUTPUTS = {'features': PortKind.FEATURES}

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(name)
        self._session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.auth = self.attr('auth', None)
        return self._session

    def lookup(self, bounds) -> Dict[str, Any]:
        """Catalog properties for an EPSG:3857 bounding box."""
        params = dict(self.attr('query'))
        params['BBOX'] = ','.join(str(v) for v in bounds) + ',EPSG:3857'
        params['outputFormat'] = 'application/json'
        response = self.session.get(
            self.attr('url'), params=params, timeout=self.attr('timeout', 30.0)
        )
        response.raise_for_status()
        records = response.json().get('features', [])
        return records[0].get('properties', {}) if records else {}

    def process(self, items):
        to_mercator = WEB_MERCATOR.from_(self.attr('input_spatial_reference'))
        field_names = list(self.attr('field_names'))
        defaults = dict(self.attr('default_fields', {}))
        field_map = dict(self.attr('field_map', {}))
        for feature in items:
            bounds = to_mercator.transform_bounds(feature.geometry.bounds)
            found = self.lookup(bounds)
            for name in field_names:
                value = found.get(name)
                if value is None:
                    value = defaults.get(name)
                feature.fields[field_map.get(name, name)] = value
            yield feature


class FileFeatureSink(SinkNode):
    """Collect features and write them to a vector file when the run ends.

    Attributes
    ----------
    path : str
    layer_name : str
    output_format : OutputFormat
    append : bool
    spatial_reference : SpatialReference
        Reference of incoming geometries.
    output_spatial_reference : SpatialReference
        Reference to write.
    field_definitions : List[FieldDefinition]

    Metrics
    -------
    processed
        Features received.
    """

    INPUTS = {'features': PortKind.FEATURES}
    METRICS = ('processed',)

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(name)
        self._features: List[Feature] = []

    def consume(self, item: Feature) -> None:
        for definition in self.attr('field_definitions', ()):
            value = item.fields.get(definition.name)
            if definition.width and isinstance(value, str):
                item.fields[definition.name] = value[:definition.width]
        self._features.append(item)
        self.metric('processed').increment()

    def finish(self) -> None:
        output_format = OutputFormat(self.attr('output_format', OutputFormat.SHAPEFILE))
        append = bool(self.attr('append', False))
        if not self._features:
            logger.warning("No features detected, %s not written", self.attr('path'))
            if not append:
                # An earlier run's output must not pass for this one's.
                remove_vector_file(self.attr('path'), output_format.driver)
            return
        definitions = self.attr('field_definitions', base_field_definitions())
        write_features(
            self._features,
            path=self.attr('path'),
            layer=self.attr('layer_name', 'geodetect'),
            driver=output_format.driver,
            spatial_reference=self.attr('spatial_reference'),
            output_spatial_reference=self.attr('output_spatial_reference'),
            columns=[d.name for d in definitions],
            append=append,
        )
