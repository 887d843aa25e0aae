# -*- coding: utf-8 -*-
"""
Shared test fixtures - Synthetic models, rasters and coordinate contexts.

Dependencies
------------
pytest
rasterio
shapely

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
2026-03-13

Modified
--------
2026-03-16
"""

import numpy as np
import pytest
import rasterio
from rasterio.enums import ColorInterp
from rasterio.transform import Affine
from shapely.geometry import box

from geodetect.IO.base import RasterInfo
from geodetect.geolocation.manager import CoordinateTransformManager
from geodetect.geolocation.spatial_reference import SpatialReference
from geodetect.model.base import (
    DetectionModel,
    ModelMetadata,
    ModelOutput,
    SegmentationModel,
)
from geodetect.vocabulary import ModelCategory

# 0.01 degree/pixel, origin at (lon=116.0, lat=-31.0)
GEO_TRANSFORM = Affine(0.01, 0.0, 116.0, 0.0, -0.01, -31.0)


class BrightBoxModel(DetectionModel):
    """Reports one box in the middle of every bright window."""

    def __init__(self, model_size=(32, 32), labels=('ship', 'boat')):
        self._metadata = ModelMetadata(
            name='bright-box',
            version='1.0',
            category=ModelCategory.DETECTION,
            model_size=model_size,
            labels=tuple(labels),
            time_created=1767225600.0,
            description='Test model',
        )
        self.calls = 0

    @property
    def metadata(self):
        return self._metadata

    def detect(self, windows, confidence):
        self.calls += 1
        w, h = self._metadata.model_size
        results = []
        for window in windows:
            outputs = []
            if window.mean() > 30:
                scores = {'ship': 0.9, 'boat': 0.1}
                if max(scores.values()) >= confidence:
                    outputs.append(ModelOutput(scores, box(w / 4, h / 4, 3 * w / 4, 3 * h / 4)))
            results.append(outputs)
        return results


class BrightMaskModel(SegmentationModel):
    """Probability mask equal to the first band scaled to [0, 1]."""

    def __init__(self, model_size=(32, 32)):
        super().__init__()
        self._metadata = ModelMetadata(
            name='bright-mask',
            version='1.0',
            category=ModelCategory.SEGMENTATION,
            model_size=model_size,
            labels=('building',),
        )

    @property
    def metadata(self):
        return self._metadata

    def predict_masks(self, windows):
        return windows[:, :1].astype(np.float64) / 255.0


@pytest.fixture
def box_model():
    return BrightBoxModel()


@pytest.fixture
def mask_model():
    return BrightMaskModel()


@pytest.fixture
def geographic_info():
    """200 x 100 pixel raster covering lon 116..118, lat -32..-31."""
    return RasterInfo(
        size=(200, 100),
        transform=GEO_TRANSFORM,
        spatial_reference=SpatialReference('EPSG:4326'),
    )


@pytest.fixture
def geo_context(geographic_info):
    return CoordinateTransformManager().from_raster(geographic_info)


def write_tiff(path, data, crs='EPSG:4326', transform=GEO_TRANSFORM, alpha=False):
    """Write a uint8 ``(bands, rows, cols)`` array as a GeoTIFF."""
    bands, rows, cols = data.shape
    profile = dict(
        driver='GTiff', height=rows, width=cols, count=bands,
        dtype='uint8', transform=transform,
    )
    if crs is not None:
        profile['crs'] = crs
    if alpha:
        profile['photometric'] = 'RGB'
    with rasterio.open(str(path), 'w', **profile) as ds:
        ds.write(data)
        if alpha:
            ds.colorinterp = [
                ColorInterp.red, ColorInterp.green, ColorInterp.blue, ColorInterp.alpha,
            ]
    return path


@pytest.fixture
def bright_square_tiff(tmp_path):
    """3-band 64 x 64 GeoTIFF with a bright 16 x 16 square at (24, 24)."""
    data = np.zeros((3, 64, 64), dtype=np.uint8)
    data[:, 24:40, 24:40] = 255
    return write_tiff(tmp_path / 'scene.tif', data)
