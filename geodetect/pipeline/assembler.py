# -*- coding: utf-8 -*-
"""
Pipeline Assembler - Create, configure and wire the detection graph.

The assembler takes the products of image and model initialization (the
``GeoContext``, the ``WindowPlanner``, the optional ``RegionFilter``) plus
the run configuration, resolves the ``PipelineVariant`` into a
``Topology`` and turns every stage into a configured node. Configuration
contradictions are reported here, before any node runs.

Node attributes by stage:

- ``blockCache``, ``slidingWindow``: ``buffer_size`` is half of the
  configured cache size.
- ``border``: padded to the largest window, and to the model size when
  windows are resampled.
- ``detector``: confidence as a fraction of 1.
- ``labelFilter``: exclude labels take precedence over include labels.
- ``nms``: overlap threshold as a fraction of 1.
- ``predToFeature``: ``top_five`` field of five labels, run date, producer
  info and extra fields.

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
2026-03-12

Modified
--------
2026-03-16
"""

# Standard library
import datetime
import getpass
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

# geodetect internal
from geodetect import __version__
from geodetect.IO.base import ALPHA
from geodetect.IO.map_service import TILE_SIZE, MapServiceClient, split_credentials
from geodetect.config import RunConfig
from geodetect.exceptions import (
    ConfigurationError,
    CrsMismatchError,
    MissingCredentialsError,
    UnsupportedModelTypeError,
)
from geodetect.geolocation.manager import GeoContext
from geodetect.model.base import DetectionModel, SegmentationModel
from geodetect.model.polygonize import RasterToPolygon
from geodetect.planning.region_filter import RegionFilter
from geodetect.planning.windows import WindowPlanner
from geodetect.processing.features import (
    DGCS_WFS_URL,
    EVWHS_WFS_URL,
    WFS_TYPENAME,
    FieldDefinition,
    base_field_definitions,
)
from geodetect.processing.node import Node, SinkNode
from geodetect.pipeline.topology import PipelineVariant, StageRole, Topology
from geodetect.vocabulary import LabelFilterType, ModelCategory

logger = logging.getLogger(__name__)

APP_NAME = "geodetect"


@dataclass
class AssembledPipeline:
    """A wired graph ready to run.

    Attributes
    ----------
    topology : Topology
    nodes : Dict[str, Node]
        Nodes by stage name.
    """

    topology: Topology
    nodes: Dict[str, Node]

    def node(self, role: StageRole) -> Node:
        return self.nodes[role.value]

    @property
    def sink(self) -> SinkNode:
        return self.nodes[StageRole.FEATURE_SINK.value]

    @property
    def sliding_window(self) -> Node:
        return self.nodes[StageRole.SLIDING_WINDOW.value]

    @property
    def detector(self) -> Node:
        return self.nodes[StageRole.DETECTOR.value]


def field_definitions(config: RunConfig) -> List[FieldDefinition]:
    """Output columns for a run, in write order."""
    definitions = base_field_definitions()
    if config.producer_info:
        definitions += [
            FieldDefinition('username', 'str', 50),
            FieldDefinition('app', 'str', 50),
            FieldDefinition('app_ver', 'str', 50),
        ]
    if config.catalog_lookup:
        definitions.append(FieldDefinition('catalog_id', 'str'))
    definitions += [FieldDefinition(name, 'str') for name in config.extra_field_pairs]
    return definitions


class PipelineAssembler:
    """Build the detection graph for one run.

    Parameters
    ----------
    config : RunConfig
        Run settings.
    geo : GeoContext
        Coordinate products of image initialization.
    model : DetectionModel
        Loaded model.
    planner : WindowPlanner
        Window plan of the model.
    region_filter : RegionFilter, optional
        Built region filter, ``None`` for no filtering.
    client : MapServiceClient, optional
        Connected client, required for remote sources.

    Examples
    --------
    >>> assembler = PipelineAssembler(config, geo, model, planner)
    >>> pipeline = assembler.assemble()
    >>> pipeline.topology.names
    ('blockSource', 'blockCache', 'border', 'slidingWindow', 'detector', ...)
    """

    def __init__(
        self,
        config: RunConfig,
        geo: GeoContext,
        model: DetectionModel,
        planner: WindowPlanner,
        region_filter: Optional[RegionFilter] = None,
        client: Optional[MapServiceClient] = None,
    ) -> None:
        self.config = config
        self.geo = geo
        self.model = model
        self.planner = planner
        self.region_filter = region_filter
        self.client = client

    def variant(self) -> PipelineVariant:
        config = self.config
        return PipelineVariant(
            source_kind=config.source,
            category=self.model.metadata.category,
            have_alpha=self.geo.have_alpha,
            nms=config.nms,
            label_filter=bool(config.include_labels or config.exclude_labels),
            region_filter=self.region_filter is not None,
            xref=config.catalog_lookup,
        )

    def check(self) -> None:
        """Reject configuration contradictions.

        Raises
        ------
        UnsupportedModelTypeError
            If the model category and model class disagree, or
            polygonization options are given for a detection model.
        MissingCredentialsError
            If catalog lookup lacks credentials or a token.
        CrsMismatchError
            If catalog lookup is requested for an image without a CRS.
        ConfigurationError
            If a remote source has no client.
        """
        category = self.model.metadata.category
        if category is ModelCategory.SEGMENTATION:
            if not isinstance(self.model, SegmentationModel):
                raise UnsupportedModelTypeError(
                    f"Unsupported model type: {type(self.model).__name__} "
                    f"is not a segmentation model"
                )
        elif self.config.polygonize:
            raise UnsupportedModelTypeError(
                f"Unsupported model type: polygonization options require a "
                f"segmentation model, {self.model.metadata.name} is a "
                f"{category.value} model"
            )

        if self.config.catalog_lookup:
            if not (self.config.wfs_credentials or self.config.credentials):
                raise MissingCredentialsError("No credentials specified for WFS service")
            if not self.config.token:
                raise MissingCredentialsError("No token specified for WFS service")
            if self.geo.image_sr.is_local:
                raise CrsMismatchError(
                    "Catalog lookup requires a georeferenced image, the input "
                    "image has no spatial reference"
                )

        if self.config.source.is_remote and self.client is None:
            raise ConfigurationError(
                f"{self.config.source.value} source requires a map service client"
            )

    def assemble(self) -> AssembledPipeline:
        """Create every node, connect ports and attributes, and validate.

        Returns
        -------
        AssembledPipeline
        """
        self.check()
        topology = self.variant().resolve()
        logger.debug("Pipeline stages: %s", ' -> '.join(topology.names))

        nodes: Dict[str, Node] = {}
        for stage in topology.stages:
            node = stage.node_class.create(stage.name)
            configure = getattr(self, f"_configure_{stage.role.name.lower()}")
            configure(node)
            nodes[stage.name] = node

        for edge in topology.attr_edges:
            nodes[edge.consumer].connect_attrs(nodes[edge.provider])
        for edge in topology.edges:
            nodes[edge.consumer].input(edge.input_port).connect(
                nodes[edge.producer].output(edge.output_port)
            )

        pipeline = AssembledPipeline(topology, nodes)
        pipeline.sink.validate()
        return pipeline

    # -- per-stage configuration ---------------------------------------------

    @property
    def buffer_size(self) -> int:
        return self.config.max_cache_size // 2

    def _configure_block_source(self, node: Node) -> None:
        geo = self.geo
        node.attrs.update(
            bbox=geo.bbox,
            image_size=geo.image_size,
            color_interps=geo.color_interps,
            dtype=geo.dtype,
        )
        if self.config.source.is_remote:
            node.attrs.update(
                client=self.client,
                config=self.client.config_from_area(geo.service_area),
                max_connections=self.config.max_connections,
                block_size=(TILE_SIZE, TILE_SIZE),
            )
        else:
            node.attrs['path'] = self.config.image

    def _configure_remove_alpha(self, node: Node) -> None:
        node.attrs['band_to_remove'] = ALPHA

    def _configure_block_cache(self, node: Node) -> None:
        node.attrs['buffer_size'] = self.buffer_size

    def _configure_border(self, node: Node) -> None:
        plan = self.planner.plan()
        node.attrs['window_size'] = (
            max(spec.size[0] for spec in plan),
            max(spec.size[1] for spec in plan),
        )
        if self.planner.padded_size is not None:
            node.attrs['padded_size'] = self.planner.padded_size

    def _configure_region_filter(self, node: Node) -> None:
        node.attrs['region_filter'] = self.region_filter

    def _configure_sliding_window(self, node: Node) -> None:
        node.attrs.update(
            window_plan=self.planner.plan(),
            resampled_size=self.planner.resampled_size,
            aoi=self.geo.bbox,
            buffer_size=self.buffer_size,
        )

    def _configure_detector(self, node: Node) -> None:
        if isinstance(self.model, SegmentationModel) and self.config.polygonize:
            self.model.set_raster_to_polygon(RasterToPolygon(**self.config.polygonize))
        node.attrs.update(
            model=self.model,
            confidence=self.config.confidence / 100,
            batch_size=self.config.batch_size,
        )

    def _configure_label_filter(self, node: Node) -> None:
        if self.config.exclude_labels:
            node.attrs['labels'] = list(self.config.exclude_labels)
            node.attrs['label_filter_type'] = LabelFilterType.EXCLUDE
        else:
            node.attrs['labels'] = list(self.config.include_labels)
            node.attrs['label_filter_type'] = LabelFilterType.INCLUDE

    def _configure_nms(self, node: Node) -> None:
        node.attrs['overlap_threshold'] = self.config.overlap / 100

    def _configure_box_to_poly(self, node: Node) -> None:
        pass

    def _configure_to_feature(self, node: Node) -> None:
        extra = {'date': datetime.datetime.now(datetime.timezone.utc).date().isoformat()}
        if self.config.producer_info:
            extra.update(username=getpass.getuser(), app=APP_NAME, app_ver=__version__)
        extra.update(self.config.extra_field_pairs)
        node.attrs.update(
            geometry_type=self.config.geometry_type,
            pixel_to_proj=self.geo.pixel_to_proj,
            top_n_name='top_five',
            top_n_categories=5,
            extra_fields=extra,
        )

    def _configure_field_extractor(self, node: Node) -> None:
        config = self.config
        if config.dgcs_catalog_id:
            logger.info("Connecting to DGCS web feature service...")
            url = DGCS_WFS_URL
        else:
            logger.info("Connecting to EVWHS web feature service...")
            url = EVWHS_WFS_URL
        node.attrs.update(
            url=url,
            query={
                'service': 'wfs',
                'version': '1.1.0',
                'connectid': config.token,
                'request': 'getFeature',
                'typeName': WFS_TYPENAME,
                'srsName': 'EPSG:3857',
            },
            auth=split_credentials(config.wfs_credentials or config.credentials),
            input_spatial_reference=self.geo.image_sr,
            field_names=['legacyId'],
            default_fields={'legacyId': 'uncataloged'},
            field_map={'legacyId': 'catalog_id'},
        )

    def _configure_feature_sink(self, node: Node) -> None:
        config = self.config
        node.attrs.update(
            path=config.output,
            layer_name=config.layer_name,
            output_format=config.output_format,
            append=config.append,
            geometry_type=config.geometry_type,
            spatial_reference=self.geo.image_sr,
            output_spatial_reference=self.geo.output_sr,
            field_definitions=field_definitions(config),
        )
