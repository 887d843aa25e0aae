# -*- coding: utf-8 -*-
"""
Detection Models - Model metadata, predictions and the model interface.

A model consumes a batch of equally-sized image windows and returns, per
window, the objects it found. Detection models return axis-aligned boxes;
segmentation models return polygon outlines produced by a
``RasterToPolygon`` converter from per-label probability masks.

Model package deserialization is left to the model's own factory: the run
configuration names a ``"package.module:factory"`` reference that
``load_model`` imports and calls.

Coordinate Conventions
----------------------
Model outputs are in window-local pixel space of the (possibly resampled)
window passed to ``detect``, ``(x, y)`` = ``(col, row)``. The detector node
maps them back into image pixel space.

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
2026-03-05

Modified
--------
2026-03-12
"""

# Standard library
import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

# Third-party
import numpy as np

# geodetect internal
from geodetect.exceptions import ConfigurationError
from geodetect.geolocation.box import GeoBox
from geodetect.model.polygonize import RasterToPolygon
from geodetect.vocabulary import ModelCategory

logger = logging.getLogger(__name__)

Size = Tuple[int, int]


@dataclass(frozen=True)
class ModelMetadata:
    """Read-only description of a trained model.

    Attributes
    ----------
    name : str
        Model name.
    version : str
        Model version string.
    category : ModelCategory
        ``DETECTION`` or ``SEGMENTATION``.
    model_size : Tuple[int, int]
        Fixed input ``(width, height)`` in pixels.
    labels : Tuple[str, ...]
        Labels the model can emit.
    time_created : float
        Creation time, seconds since the epoch (UTC).
    description : str
        Free-text description.
    color_mode : str
        Expected band layout, e.g. ``'rgb'`` or ``'grayscale'``.
    bounding_box : GeoBox, optional
        Area the model was trained for.
    """

    name: str
    version: str
    category: ModelCategory
    model_size: Size
    labels: Tuple[str, ...] = ()
    time_created: float = 0.0
    description: str = ''
    color_mode: str = 'rgb'
    bounding_box: Optional[GeoBox] = None

    @property
    def aspect_ratio(self) -> float:
        """Height over width of the model input."""
        return self.model_size[1] / self.model_size[0]


class ModelOutput(NamedTuple):
    """One object found in one window.

    Attributes
    ----------
    scores : Dict[str, float]
        Confidence per label, in [0, 1].
    geometry : shapely.geometry.base.BaseGeometry
        Window-local pixel geometry: a box polygon for detection models,
        an outline for segmentation models.
    """

    scores: Dict[str, float]
    geometry: Any


@dataclass
class Prediction:
    """A detection in image pixel space, as it flows between nodes.

    Box predictions carry ``box``; ``polygon`` is filled in by the
    box-to-polygon stage. Segmentation predictions carry ``polygon`` only.

    Attributes
    ----------
    scores : Dict[str, float]
        Confidence per label.
    window : Tuple[float, float, float, float]
        Bounds of the window that produced the prediction.
    box : Tuple[float, float, float, float], optional
        ``(minx, miny, maxx, maxy)`` in image pixels.
    polygon : shapely.geometry.Polygon, optional
        Outline in image pixels.
    """

    scores: Dict[str, float]
    window: Tuple[float, float, float, float]
    box: Optional[Tuple[float, float, float, float]] = None
    polygon: Any = None

    def top(self, n: Optional[int] = None) -> List[Tuple[str, float]]:
        """Labels sorted by descending score, optionally the first *n*."""
        ranked = sorted(self.scores.items(), key=lambda kv: kv[1], reverse=True)
        return ranked if n is None else ranked[:n]

    @property
    def top_label(self) -> str:
        return self.top(1)[0][0]

    @property
    def top_score(self) -> float:
        return self.top(1)[0][1]


class DetectionModel(ABC):
    """
    Abstract base class for trained models.

    Subclasses provide ``metadata`` and implement ``detect``.
    """

    @property
    @abstractmethod
    def metadata(self) -> ModelMetadata:
        ...

    @abstractmethod
    def detect(
        self,
        windows: np.ndarray,
        confidence: float,
    ) -> List[List[ModelOutput]]:
        """
        Find objects in a batch of windows.

        Parameters
        ----------
        windows : np.ndarray
            Shape ``(N, bands, rows, cols)``; ``(rows, cols)`` equals the
            model input size.
        confidence : float
            Minimum top score in [0, 1] for an output to be returned.

        Returns
        -------
        List[List[ModelOutput]]
            One list of outputs per window.
        """
        ...

    def default_step(self, window_size: Size) -> Size:
        """Sliding-window step the model recommends for *window_size*.

        The default overlaps consecutive windows by half.
        """
        return (max(1, window_size[0] // 2), max(1, window_size[1] // 2))


class SegmentationModel(DetectionModel):
    """
    Model producing per-label probability masks.

    ``detect`` turns masks into outlines with the configured
    ``RasterToPolygon`` converter. Subclasses implement ``predict_masks``.
    """

    def __init__(self) -> None:
        self._raster_to_polygon = None

    @property
    def raster_to_polygon(self) -> RasterToPolygon:
        if getattr(self, '_raster_to_polygon', None) is None:
            self._raster_to_polygon = RasterToPolygon()
        return self._raster_to_polygon

    def set_raster_to_polygon(self, converter: RasterToPolygon) -> None:
        self._raster_to_polygon = converter

    @abstractmethod
    def predict_masks(self, windows: np.ndarray) -> np.ndarray:
        """
        Per-label probabilities.

        Returns
        -------
        np.ndarray
            Shape ``(N, n_labels, rows, cols)``, label order matching
            ``metadata.labels``.
        """
        ...

    def detect(self, windows, confidence):
        masks = self.predict_masks(windows)
        labels = self.metadata.labels
        results: List[List[ModelOutput]] = []
        for window_masks in masks:
            outputs = []
            for label, probability in zip(labels, window_masks):
                for polygon, score in self.raster_to_polygon.convert(
                    probability, confidence
                ):
                    outputs.append(ModelOutput({label: score}, polygon))
            results.append(outputs)
        return results


def load_model(reference: str, **options: Any) -> DetectionModel:
    """Import and build a model from a ``"package.module:factory"`` string.

    Parameters
    ----------
    reference : str
        Module path and attribute name separated by a colon. The attribute
        is called with *options* and must return a ``DetectionModel``.
    **options
        Keyword arguments forwarded to the factory.

    Raises
    ------
    ConfigurationError
        If the reference is malformed, cannot be imported, or does not
        produce a ``DetectionModel``.
    """
    module_name, sep, attr = reference.partition(':')
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Model reference {reference!r} must look like 'package.module:factory'"
        )
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(
            f"Cannot load model {reference!r}: {e}"
        ) from e

    model = factory(**options)
    if not isinstance(model, DetectionModel):
        raise ConfigurationError(
            f"Model {reference!r} produced {type(model).__name__}, "
            f"not a DetectionModel"
        )
    logger.debug("Loaded model %s from %s", model.metadata.name, reference)
    return model
