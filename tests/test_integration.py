# -*- coding: utf-8 -*-
"""
End-to-End Tests - Local GeoTIFF through model, post-processing and vector
output, plus the command line entry point.

Dependencies
------------
pytest
rasterio
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
2026-03-14

Modified
--------
2026-03-16
"""

import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from geodetect.app import DetectionRun, pretty_bytes
from geodetect.cli import main
from geodetect.config import RunConfig
from geodetect.vocabulary import GeometryType, OutputFormat, RunStatus

from conftest import write_tiff


def run_config(image, output, **kwargs):
    kwargs.setdefault('confidence', 50)
    kwargs.setdefault('output_format', OutputFormat.GEOJSON)
    kwargs.setdefault('quiet', True)
    return RunConfig(model='conftest:BrightBoxModel', image=str(image), output=str(output), **kwargs)


def write_layer(path, geometries):
    gpd.GeoDataFrame(geometry=list(geometries), crs='EPSG:4326').to_file(path, driver='GeoJSON')
    return str(path)


# ---------------------------------------------------------------------------
# Detection runs
# ---------------------------------------------------------------------------

class TestDetectionRun:
    """64 x 64 scene, 32 x 32 model, windows every 16 pixels.

    Five windows see enough of the bright square to report it: the one
    centered on it and its four edge neighbours.
    """

    def test_box_detection(self, bright_square_tiff, tmp_path, box_model):
        output = tmp_path / 'ships.geojson'
        report = DetectionRun(run_config(bright_square_tiff, output), model=box_model).run()
        assert report.status is RunStatus.COMPLETED
        assert report.feature_count == 5

        frame = gpd.read_file(output)
        assert len(frame) == 5
        assert set(frame['top_cat']) == {'ship'}
        assert frame.crs.to_epsg() == 4326
        center = (116.24, -31.40, 116.40, -31.24)
        assert any(g.bounds == pytest.approx(center) for g in frame.geometry)

    def test_nms_keeps_disjoint_boxes(self, bright_square_tiff, tmp_path, box_model):
        output = tmp_path / 'ships.geojson'
        config = run_config(bright_square_tiff, output, nms=True)
        assert DetectionRun(config, model=box_model).run().feature_count == 5

    def test_high_confidence_finds_nothing(self, bright_square_tiff, tmp_path, box_model):
        output = tmp_path / 'ships.geojson'
        config = run_config(bright_square_tiff, output, confidence=95)
        report = DetectionRun(config, model=box_model).run()
        assert report.feature_count == 0
        assert not output.exists()

    def test_label_filter(self, bright_square_tiff, tmp_path, box_model):
        output = tmp_path / 'boats.geojson'
        config = run_config(bright_square_tiff, output, include_labels=['boat'])
        DetectionRun(config, model=box_model).run()
        frame = gpd.read_file(output)
        assert set(frame['top_cat']) == {'boat'}
        assert frame['top_score'].tolist() == pytest.approx([0.1] * 5)

    def test_region_filter(self, bright_square_tiff, tmp_path, box_model):
        # Pixels (0, 0)..(20, 20): only windows anchored at 0 or 16 touch it.
        aoi = write_layer(tmp_path / 'aoi.geojson', [box(116.0, -31.2, 116.2, -31.0)])
        output = tmp_path / 'ships.geojson'
        config = run_config(bright_square_tiff, output, filters=[('include', [aoi])])
        assert DetectionRun(config, model=box_model).run().feature_count == 3

    def test_bbox(self, bright_square_tiff, tmp_path, box_model):
        from geodetect.geolocation.box import GeoBox

        output = tmp_path / 'ships.geojson'
        config = run_config(
            bright_square_tiff, output, bbox=GeoBox(116.32, -31.64, 116.64, -31.32),
        )
        report = DetectionRun(config, model=box_model).run()
        # Area of interest is pixels 32..64: windows at 32 see a quarter
        # of the square, windows at 48 none of it.
        assert report.feature_count == 0

    def test_alpha_band_removed(self, tmp_path, box_model):
        data = np.zeros((4, 64, 64), dtype=np.uint8)
        data[:3, 24:40, 24:40] = 255
        data[3] = 255
        image = write_tiff(tmp_path / 'rgba.tif', data, alpha=True)
        output = tmp_path / 'ships.geojson'
        report = DetectionRun(run_config(image, output), model=box_model).run()
        assert report.feature_count == 5

    def test_producer_fields(self, bright_square_tiff, tmp_path, box_model):
        output = tmp_path / 'ships.geojson'
        config = run_config(
            bright_square_tiff, output, producer_info=True, extra_fields=['mission', 'harbor'],
        )
        DetectionRun(config, model=box_model).run()
        frame = gpd.read_file(output)
        assert set(frame['app']) == {'geodetect'}
        assert set(frame['mission']) == {'harbor'}

    def test_segmentation_points(self, bright_square_tiff, tmp_path, mask_model):
        output = tmp_path / 'buildings.gpkg'
        config = run_config(
            bright_square_tiff, output, nms=True,
            output_format=OutputFormat.GEOPACKAGE, geometry_type=GeometryType.POINT,
        )
        report = DetectionRun(config, model=mask_model).run()
        assert report.feature_count >= 1
        frame = gpd.read_file(output)
        assert set(frame.geometry.geom_type) == {'Point'}
        assert set(frame['top_cat']) == {'building'}
        square = box(116.24, -31.40, 116.40, -31.24).buffer(0.01)
        assert all(square.contains(g) for g in frame.geometry)

    def test_model_loaded_from_reference(self, bright_square_tiff, tmp_path):
        output = tmp_path / 'ships.geojson'
        report = DetectionRun(run_config(bright_square_tiff, output)).run()
        assert report.feature_count == 5


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

class TestCommandLine:

    def test_run(self, bright_square_tiff, tmp_path):
        config = tmp_path / 'run.yaml'
        config.write_text(
            "model: conftest:BrightBoxModel\n"
            f"image: {bright_square_tiff.name}\n"
            "output: detections.geojson\n"
            "output_format: geojson\n"
            "confidence: 50\n"
        )
        assert main(['run', str(config), '--quiet']) == 0
        assert len(gpd.read_file(tmp_path / 'detections.geojson')) == 5

    def test_missing_image(self, tmp_path, caplog):
        config = tmp_path / 'run.yaml'
        config.write_text(
            "model: conftest:BrightBoxModel\nimage: missing.tif\noutput: out.geojson\n"
        )
        assert main(['run', str(config), '--quiet']) == 1
        assert "missing.tif" in caplog.text

    def test_invalid_config(self, tmp_path):
        config = tmp_path / 'run.yaml'
        config.write_text("image: scene.tif\noutput: out.geojson\n")
        assert main(['run', str(config), '--quiet']) == 1


@pytest.mark.parametrize("count, text", [
    (512, '512 B'), (1536, '1.50 KiB'), (3 * 1024 ** 3, '3.00 GiB'),
])
def test_pretty_bytes(count, text):
    assert pretty_bytes(count) == text
