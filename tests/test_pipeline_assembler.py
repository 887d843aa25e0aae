# -*- coding: utf-8 -*-
"""
Pipeline Assembler Tests - Node configuration, wiring and the run-level
configuration checks.

Dependencies
------------
pytest

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
2026-03-18
"""

import pytest
from shapely.geometry import box

from geodetect import __version__
from geodetect.exceptions import (
    ConfigurationError,
    CrsMismatchError,
    MissingCredentialsError,
    UnsupportedModelTypeError,
)
from geodetect.config import RunConfig
from geodetect.geolocation.box import PixelBox
from geodetect.geolocation.spatial_reference import LOCAL
from geodetect.model.base import ModelMetadata
from geodetect.pipeline.assembler import PipelineAssembler, field_definitions
from geodetect.pipeline.topology import StageRole
from geodetect.planning.region_filter import RegionFilter
from geodetect.planning.windows import WindowPlanner, WindowSpec
from geodetect.vocabulary import LabelFilterType, ModelCategory, SourceKind

from conftest import BrightBoxModel


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def make_config(**kwargs):
    kwargs.setdefault('model', 'tests:model')
    kwargs.setdefault('output', 'detections.geojson')
    kwargs.setdefault('image', 'scene.tif')
    return RunConfig(**kwargs)


def planner_for(model, **kwargs):
    metadata = model.metadata
    return WindowPlanner(metadata.model_size, model.default_step, **kwargs)


def assembler(config, geo, model, **kwargs):
    planner = kwargs.pop('planner', None) or planner_for(model)
    return PipelineAssembler(config, geo, model, planner, **kwargs)


class MislabelledModel(BrightBoxModel):
    """Detection model that claims to be a segmentation model."""

    def __init__(self):
        super().__init__()
        self._metadata = ModelMetadata(
            name='mislabelled', version='1', category=ModelCategory.SEGMENTATION,
            model_size=(32, 32),
        )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

class TestWiring:

    def test_detection_pipeline(self, geo_context, box_model):
        pipeline = assembler(make_config(), geo_context, box_model).assemble()
        names = pipeline.topology.names
        assert names[0] == 'blockSource' and names[-1] == 'featureSink'
        assert pipeline.sink is pipeline.nodes['featureSink']
        assert pipeline.sink.upstream_nodes() == [pipeline.node(StageRole.TO_FEATURE)]
        assert pipeline.detector.upstream_nodes() == [pipeline.sliding_window]

    def test_segmentation_with_nms(self, geo_context, mask_model):
        pipeline = assembler(make_config(nms=True), geo_context, mask_model).assemble()
        to_feature = pipeline.node(StageRole.TO_FEATURE)
        assert to_feature.upstream_nodes() == [pipeline.node(StageRole.NMS)]
        assert 'predictionToPoly' not in pipeline.nodes

    def test_detection_with_label_filter(self, geo_context, box_model):
        config = make_config(include_labels=['ship'])
        pipeline = assembler(config, geo_context, box_model).assemble()
        box_to_poly = pipeline.node(StageRole.BOX_TO_POLY)
        assert box_to_poly.upstream_nodes() == [pipeline.node(StageRole.LABEL_FILTER)]

    def test_region_filter_stage(self, geo_context, box_model):
        rf = RegionFilter(geo_context.bbox, box(0, 0, 10, 10))
        pipeline = assembler(make_config(), geo_context, box_model, region_filter=rf).assemble()
        node = pipeline.node(StageRole.REGION_FILTER)
        assert node.attr('region_filter') is rf
        assert pipeline.sliding_window.upstream_nodes() == [node]

    def test_alpha_removed(self, geo_context, box_model):
        from dataclasses import replace

        geo = replace(
            geo_context, have_alpha=True,
            color_interps=('red', 'green', 'blue', 'alpha'),
        )
        pipeline = assembler(make_config(), geo, box_model).assemble()
        assert pipeline.node(StageRole.BLOCK_CACHE).attr('color_interps') == ('red', 'green', 'blue')

    def test_attributes_reach_downstream_stages(self, geo_context, box_model):
        pipeline = assembler(make_config(), geo_context, box_model).assemble()
        assert pipeline.sliding_window.attr('bbox') == geo_context.bbox
        assert pipeline.node(StageRole.BORDER).attr('image_size') == (200, 100)


# ---------------------------------------------------------------------------
# Node attributes
# ---------------------------------------------------------------------------

class TestConfiguration:

    def test_percentages_become_fractions(self, geo_context, box_model):
        config = make_config(confidence=80, nms=True, overlap=45)
        pipeline = assembler(config, geo_context, box_model).assemble()
        assert pipeline.detector.attr('confidence') == pytest.approx(0.8)
        assert pipeline.node(StageRole.NMS).attr('overlap_threshold') == pytest.approx(0.45)

    def test_exclude_labels_win(self, geo_context, box_model):
        config = make_config(include_labels=['ship'], exclude_labels=['boat'])
        node = assembler(config, geo_context, box_model).assemble().node(StageRole.LABEL_FILTER)
        assert node.attr('labels') == ['boat']
        assert node.attr('label_filter_type') is LabelFilterType.EXCLUDE

    def test_include_labels(self, geo_context, box_model):
        config = make_config(include_labels=['ship'])
        node = assembler(config, geo_context, box_model).assemble().node(StageRole.LABEL_FILTER)
        assert node.attr('label_filter_type') is LabelFilterType.INCLUDE

    def test_cache_split(self, geo_context, box_model):
        config = make_config(max_cache_size=1000)
        pipeline = assembler(config, geo_context, box_model).assemble()
        assert pipeline.node(StageRole.BLOCK_CACHE).attr('buffer_size') == 500
        assert pipeline.sliding_window.attr('buffer_size') == 500

    def test_window_plan_and_border(self, geo_context, box_model):
        planner = planner_for(box_model, window_sizes=[16, 32], window_steps=[8, 16])
        pipeline = assembler(make_config(), geo_context, box_model, planner=planner).assemble()
        assert pipeline.sliding_window.attr('window_plan') == (
            WindowSpec((16, 16), (8, 8)), WindowSpec((32, 32), (16, 16)),
        )
        assert pipeline.sliding_window.attr('resampled_size') == (32, 32)
        assert pipeline.node(StageRole.BORDER).attr('window_size') == (32, 32)

    def test_resample_sets_padding(self, geo_context, box_model):
        planner = planner_for(box_model, window_sizes=[64], resampled_size=16)
        pipeline = assembler(make_config(), geo_context, box_model, planner=planner).assemble()
        border = pipeline.node(StageRole.BORDER)
        assert border.attr('padded_size') == (32, 32)
        assert border.border() == (64, 64)

    def test_local_source_path(self, geo_context, box_model):
        pipeline = assembler(make_config(image='/data/scene.tif'), geo_context, box_model).assemble()
        source = pipeline.node(StageRole.BLOCK_SOURCE)
        assert source.attr('path') == '/data/scene.tif'
        assert source.attr('bbox') == PixelBox(0, 0, 200, 100)

    def test_feature_fields(self, geo_context, box_model, monkeypatch):
        monkeypatch.setattr('getpass.getuser', lambda: 'analyst')
        config = make_config(producer_info=True, extra_fields=['mission', 'harbor'])
        pipeline = assembler(config, geo_context, box_model).assemble()
        extra = pipeline.node(StageRole.TO_FEATURE).attr('extra_fields')
        assert extra['username'] == 'analyst'
        assert extra['app'] == 'geodetect'
        assert extra['app_ver'] == __version__
        assert extra['mission'] == 'harbor'
        assert len(extra['date']) == 10

        names = [d.name for d in pipeline.sink.attr('field_definitions')]
        assert names == [
            'top_cat', 'top_score', 'date', 'top_five',
            'username', 'app', 'app_ver', 'mission',
        ]

    def test_sink_references(self, geo_context, box_model):
        pipeline = assembler(make_config(), geo_context, box_model).assemble()
        assert pipeline.sink.attr('spatial_reference') == geo_context.image_sr
        assert pipeline.sink.attr('output_spatial_reference') == geo_context.output_sr

    def test_catalog_lookup(self, geo_context, box_model):
        config = make_config(evwhs_catalog_id=True, credentials='user:secret', token='abc')
        pipeline = assembler(config, geo_context, box_model).assemble()
        node = pipeline.node(StageRole.FIELD_EXTRACTOR)
        assert 'evwhs' in node.attr('url')
        assert node.attr('query')['connectid'] == 'abc'
        assert node.attr('auth') == ('user', 'secret')
        assert 'catalog_id' in [d.name for d in field_definitions(config)]

    def test_polygonize_options(self, geo_context, mask_model):
        config = make_config(polygonize={'method': 'simple', 'min_area': 4})
        assembler(config, geo_context, mask_model).assemble()
        assert mask_model.raster_to_polygon.method == 'simple'
        assert mask_model.raster_to_polygon.min_area == 4


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

class TestChecks:

    def test_segmentation_category_needs_segmentation_model(self, geo_context):
        with pytest.raises(UnsupportedModelTypeError):
            assembler(make_config(), geo_context, MislabelledModel()).assemble()

    def test_polygonize_needs_segmentation_model(self, geo_context, box_model):
        config = make_config(polygonize={'method': 'dp'})
        with pytest.raises(UnsupportedModelTypeError):
            assembler(config, geo_context, box_model).check()

    def test_catalog_without_credentials(self, geo_context, box_model):
        config = make_config(dgcs_catalog_id=True, token='abc')
        with pytest.raises(MissingCredentialsError, match="No credentials"):
            assembler(config, geo_context, box_model).check()

    def test_catalog_without_token(self, geo_context, box_model):
        config = make_config(dgcs_catalog_id=True, wfs_credentials='user:secret')
        with pytest.raises(MissingCredentialsError, match="No token"):
            assembler(config, geo_context, box_model).check()

    def test_catalog_on_image_without_crs(self, geo_context, box_model):
        from dataclasses import replace

        geo = replace(geo_context, image_sr=LOCAL, output_sr=LOCAL)
        config = make_config(dgcs_catalog_id=True, wfs_credentials='user:secret', token='abc')
        with pytest.raises(CrsMismatchError, match="no spatial reference"):
            assembler(config, geo, box_model).check()

    def test_remote_source_needs_client(self, geo_context, box_model):
        config = make_config(source=SourceKind.DGCS, image=None)
        with pytest.raises(ConfigurationError, match="client"):
            assembler(config, geo_context, box_model).check()
