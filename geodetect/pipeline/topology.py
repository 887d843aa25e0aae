# -*- coding: utf-8 -*-
"""
Pipeline Topology - Which stages a run needs and how they connect.

A ``PipelineVariant`` captures the handful of run facts that shape the
graph (source kind, model category, alpha band, NMS, label filter, region
filter, catalog lookup). ``resolve()`` turns it into a ``Topology``: the
ordered stages, the port edges between consecutive stages and the
attribute edges, without creating any node.

Full chain, optional stages in brackets::

    blockSource -> [removeAlpha] -> blockCache -> border -> [regionFilter]
        -> slidingWindow -> detector -> [labelFilter] -> [nms]
        -> [predictionToPoly] -> predToFeature -> [fieldExtractor]
        -> featureSink

Skipped stages are bypassed: their neighbors are connected directly.

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
2026-03-11

Modified
--------
2026-03-15
"""

# Standard library
from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Tuple, Type

# geodetect internal
from geodetect.processing.detection import (
    BoxDetector,
    BoxLabelFilter,
    BoxNonMaxSuppression,
    PolyDetector,
    PolyLabelFilter,
    PolyNonMaxSuppression,
    PredictionBoxToPoly,
)
from geodetect.processing.features import (
    FileFeatureSink,
    PredictionToFeature,
    WfsFeatureFieldExtractor,
)
from geodetect.processing.imagery import (
    BlockCache,
    GeoTiffBlockSource,
    MapServiceBlockSource,
    RemoveBandByColorInterp,
    SlidingWindow,
    SubsetRegionFilter,
    SubsetWithBorder,
)
from geodetect.processing.node import Node
from geodetect.vocabulary import ModelCategory, SourceKind


class StageRole(Enum):
    """Position of a stage in the detection chain."""

    BLOCK_SOURCE = "blockSource"
    REMOVE_ALPHA = "removeAlpha"
    BLOCK_CACHE = "blockCache"
    BORDER = "border"
    REGION_FILTER = "regionFilter"
    SLIDING_WINDOW = "slidingWindow"
    DETECTOR = "detector"
    LABEL_FILTER = "labelFilter"
    NMS = "nms"
    BOX_TO_POLY = "predictionToPoly"
    TO_FEATURE = "predToFeature"
    FIELD_EXTRACTOR = "fieldExtractor"
    FEATURE_SINK = "featureSink"


class Stage(NamedTuple):
    """A node to create: its name, role and class."""

    name: str
    role: StageRole
    node_class: Type[Node]


class Edge(NamedTuple):
    """``producer.output(output_port) -> consumer.input(input_port)``."""

    producer: str
    output_port: str
    consumer: str
    input_port: str


class AttrEdge(NamedTuple):
    """``consumer.connect_attrs(provider)``."""

    consumer: str
    provider: str


@dataclass(frozen=True)
class Topology:
    """Resolved graph shape.

    Attributes
    ----------
    stages : Tuple[Stage, ...]
        Stages in chain order.
    edges : Tuple[Edge, ...]
    attr_edges : Tuple[AttrEdge, ...]
        In connection order; later providers take precedence.
    """

    stages: Tuple[Stage, ...]
    edges: Tuple[Edge, ...]
    attr_edges: Tuple[AttrEdge, ...]

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def stage(self, role: StageRole) -> Stage:
        for stage in self.stages:
            if stage.role is role:
                return stage
        raise KeyError(role)

    def has(self, role: StageRole) -> bool:
        return any(stage.role is role for stage in self.stages)

    def producer_of(self, consumer: str) -> str:
        """Name of the stage feeding *consumer*."""
        for edge in self.edges:
            if edge.consumer == consumer:
                return edge.producer
        raise KeyError(consumer)


@dataclass(frozen=True)
class PipelineVariant:
    """The run facts deciding the graph shape.

    Attributes
    ----------
    source_kind : SourceKind
    category : ModelCategory
    have_alpha : bool
        The source carries an alpha band to remove.
    nms : bool
    label_filter : bool
        Include or exclude labels were given.
    region_filter : bool
        A region filter was built.
    xref : bool
        Catalog cross-reference lookup is requested.

    Examples
    --------
    >>> PipelineVariant(SourceKind.LOCAL, ModelCategory.DETECTION).resolve().names
    ('blockSource', 'blockCache', 'border', 'slidingWindow', 'detector',
     'predictionToPoly', 'predToFeature', 'featureSink')
    """

    source_kind: SourceKind
    category: ModelCategory
    have_alpha: bool = False
    nms: bool = False
    label_filter: bool = False
    region_filter: bool = False
    xref: bool = False

    @property
    def is_segmentation(self) -> bool:
        return self.category is ModelCategory.SEGMENTATION

    def _stages(self) -> List[Stage]:
        seg = self.is_segmentation
        source = (
            MapServiceBlockSource if self.source_kind.is_remote
            else GeoTiffBlockSource
        )
        candidates = [
            (True, StageRole.BLOCK_SOURCE, source),
            (self.have_alpha, StageRole.REMOVE_ALPHA, RemoveBandByColorInterp),
            (True, StageRole.BLOCK_CACHE, BlockCache),
            (True, StageRole.BORDER, SubsetWithBorder),
            (self.region_filter, StageRole.REGION_FILTER, SubsetRegionFilter),
            (True, StageRole.SLIDING_WINDOW, SlidingWindow),
            (True, StageRole.DETECTOR, PolyDetector if seg else BoxDetector),
            (self.label_filter, StageRole.LABEL_FILTER,
             PolyLabelFilter if seg else BoxLabelFilter),
            (self.nms, StageRole.NMS,
             PolyNonMaxSuppression if seg else BoxNonMaxSuppression),
            (not seg, StageRole.BOX_TO_POLY, PredictionBoxToPoly),
            (True, StageRole.TO_FEATURE, PredictionToFeature),
            (self.xref, StageRole.FIELD_EXTRACTOR, WfsFeatureFieldExtractor),
            (True, StageRole.FEATURE_SINK, FileFeatureSink),
        ]
        return [
            Stage(role.value, role, node_class)
            for wanted, role, node_class in candidates if wanted
        ]

    def _attr_edges(self) -> List[AttrEdge]:
        source = StageRole.BLOCK_SOURCE.value
        consumers = [
            StageRole.BLOCK_CACHE.value,
            StageRole.BORDER.value,
            StageRole.SLIDING_WINDOW.value,
        ]
        edges = [AttrEdge(name, source) for name in consumers]
        if self.have_alpha:
            alpha = StageRole.REMOVE_ALPHA.value
            edges.append(AttrEdge(alpha, source))
            edges.extend(AttrEdge(name, alpha) for name in consumers)
        return edges

    def resolve(self) -> Topology:
        """Build the topology for this variant."""
        stages = self._stages()
        edges = [
            Edge(
                producer.name, next(iter(producer.node_class.OUTPUTS)),
                consumer.name, next(iter(consumer.node_class.INPUTS)),
            )
            for producer, consumer in zip(stages, stages[1:])
        ]
        return Topology(tuple(stages), tuple(edges), tuple(self._attr_edges()))
