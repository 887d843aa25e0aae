# -*- coding: utf-8 -*-
"""
Detection Nodes - Model inference and prediction post-processing.

Windows from the sliding window are batched through the model; outputs
are mapped from window-local pixels back into image pixels. Box models
produce ``Prediction.box``, segmentation models ``Prediction.polygon``.
Each post-processing step comes in a box and a polygon flavor so the
assembler can pick the one matching the model category.

Dependencies
------------
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
2026-03-09

Modified
--------
2026-03-14
"""

# Standard library
import logging
from typing import Iterator, List, Sequence

# Third-party
import numpy as np
from shapely import affinity
from shapely.geometry import box
from shapely.strtree import STRtree

# geodetect internal
from geodetect.model.base import DetectionModel, ModelOutput, Prediction
from geodetect.processing.imagery import Subset
from geodetect.processing.node import PortKind, TransformNode
from geodetect.vocabulary import LabelFilterType

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 8


def _fit_to_model(data: np.ndarray, model_size) -> np.ndarray:
    width, height = model_size
    if data.shape[1:] == (height, width):
        return data
    fitted = np.zeros((data.shape[0], height, width), dtype=data.dtype)
    h, w = min(height, data.shape[1]), min(width, data.shape[2])
    fitted[:, :h, :w] = data[:, :h, :w]
    return fitted


class _Detector(TransformNode):
    """Run the model over batches of windows.

    Attributes
    ----------
    model : DetectionModel
    confidence : float
        Minimum score in [0, 1].
    batch_size : int

    Metrics
    -------
    processed
        Windows run through the model.
    """

    INPUTS = {'subsets': PortKind.SUBSETS}
    OUTPUTS = {'predictions': PortKind.PREDICTIONS}
    METRICS = ('processed',)

    def process(self, items: Iterator[Subset]) -> Iterator[Prediction]:
        batch_size = max(1, int(self.attr('batch_size', DEFAULT_BATCH_SIZE)))
        batch: List[Subset] = []
        for window in items:
            batch.append(window)
            if len(batch) >= batch_size:
                yield from self._run_batch(batch)
                batch = []
        if batch:
            yield from self._run_batch(batch)

    def _run_batch(self, batch: Sequence[Subset]) -> Iterator[Prediction]:
        model: DetectionModel = self.attr('model')
        model_size = model.metadata.model_size
        stack = np.stack([_fit_to_model(w.data, model_size) for w in batch])
        results = model.detect(stack, float(self.attr('confidence', 0.95)))
        self.metric('processed').increment(len(batch))
        for window, outputs in zip(batch, results):
            # Scale from (possibly resampled) chip pixels back to image pixels.
            sx = window.region.width / window.data.shape[2]
            sy = window.region.height / window.data.shape[1]
            matrix = [sx, 0.0, 0.0, sy, window.region.x, window.region.y]
            for output in outputs:
                geometry = affinity.affine_transform(output.geometry, matrix)
                yield self._prediction(output, geometry, window)

    def _prediction(self, output: ModelOutput, geometry, window: Subset) -> Prediction:
        raise NotImplementedError


class BoxDetector(_Detector):
    """Detector for box models."""

    def _prediction(self, output, geometry, window):
        return Prediction(dict(output.scores), window.region.bounds, box=geometry.bounds)


class PolyDetector(_Detector):
    """Detector for segmentation models."""

    def _prediction(self, output, geometry, window):
        return Prediction(dict(output.scores), window.region.bounds, polygon=geometry)


class _LabelFilter(TransformNode):
    """Keep or drop labels of every prediction.

    ``INCLUDE`` keeps only the scores of ``labels``, ``EXCLUDE`` removes
    them. Predictions left without any score are dropped.
    """

    INPUTS = {'predictions': PortKind.PREDICTIONS}
    OUTPUTS = {'predictions': PortKind.PREDICTIONS}

    def process(self, items: Iterator[Prediction]) -> Iterator[Prediction]:
        labels = set(self.attr('labels'))
        include = self.attr('label_filter_type') is LabelFilterType.INCLUDE
        for prediction in items:
            scores = {
                label: score for label, score in prediction.scores.items()
                if (label in labels) == include
            }
            if scores:
                prediction.scores = scores
                yield prediction


class BoxLabelFilter(_LabelFilter):
    pass


class PolyLabelFilter(_LabelFilter):
    pass


def intersection_over_union(a, b) -> float:
    union = a.union(b).area
    if union <= 0:
        return 0.0
    return a.intersection(b).area / union


class _NonMaxSuppression(TransformNode):
    """Suppress overlapping predictions, highest top score first.

    Needs every prediction before emitting any, so it drains its input.
    Suppression ignores labels.

    Attributes
    ----------
    overlap_threshold : float
        Intersection over union in [0, 1] above which the lower-scored
        prediction is dropped.
    """

    INPUTS = {'predictions': PortKind.PREDICTIONS}
    OUTPUTS = {'predictions': PortKind.PREDICTIONS}

    def _geometry(self, prediction: Prediction):
        raise NotImplementedError

    def process(self, items: Iterator[Prediction]) -> Iterator[Prediction]:
        threshold = float(self.attr('overlap_threshold', 0.3))
        predictions = sorted(items, key=lambda p: p.top_score, reverse=True)
        if not predictions:
            return
        geometries = [self._geometry(p) for p in predictions]
        tree = STRtree(geometries)
        suppressed = np.zeros(len(predictions), dtype=bool)
        for i, prediction in enumerate(predictions):
            if suppressed[i]:
                continue
            yield prediction
            for j in tree.query(geometries[i]):
                if j > i and not suppressed[j]:
                    if intersection_over_union(geometries[i], geometries[j]) > threshold:
                        suppressed[j] = True
        logger.debug(
            "%s: kept %d of %d predictions",
            self.name, int((~suppressed).sum()), len(predictions),
        )


class BoxNonMaxSuppression(_NonMaxSuppression):

    def _geometry(self, prediction):
        return box(*prediction.box)


class PolyNonMaxSuppression(_NonMaxSuppression):

    def _geometry(self, prediction):
        return prediction.polygon


class PredictionBoxToPoly(TransformNode):
    """Give box predictions their rectangle outline."""

    INPUTS = {'predictions': PortKind.PREDICTIONS}
    OUTPUTS = {'predictions': PortKind.PREDICTIONS}

    def process(self, items: Iterator[Prediction]) -> Iterator[Prediction]:
        for prediction in items:
            prediction.polygon = box(*prediction.box)
            yield prediction
