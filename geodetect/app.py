# -*- coding: utf-8 -*-
"""
Detection Run - Drive one run from configuration to written features.

Sequence:

1. Open the image (local raster or map service) and build the
   ``GeoContext``.
2. Report the raster cache budget.
3. Load the model and log its description.
4. Plan the sliding windows.
5. Build the region filter from the filter definitions.
6. Assemble the pipeline and execute it under an ``ExecutionMonitor``.

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
2026-03-13

Modified
--------
2026-03-16
"""

# Standard library
import datetime
import logging
from typing import Optional

# geodetect internal
from geodetect.IO.geotiff import GeoTIFFReader
from geodetect.IO.map_service import MapServiceClient
from geodetect.config import RunConfig
from geodetect.geolocation.manager import CoordinateTransformManager, GeoContext
from geodetect.model.base import DetectionModel, ModelMetadata, load_model
from geodetect.pipeline.assembler import AssembledPipeline, PipelineAssembler
from geodetect.pipeline.monitor import ExecutionMonitor, ProgressDisplay, RunReport
from geodetect.planning.region_filter import RegionFilterBuilder
from geodetect.planning.windows import WindowPlanner

logger = logging.getLogger(__name__)

_BYTE_UNITS = ('B', 'KiB', 'MiB', 'GiB', 'TiB', 'PiB')


def pretty_bytes(count: int) -> str:
    """Human-readable byte count, e.g. ``'1.50 GiB'``."""
    value = float(count)
    for unit in _BYTE_UNITS:
        if value < 1024 or unit == _BYTE_UNITS[-1]:
            break
        value /= 1024
    if unit == 'B':
        return f"{int(value)} B"
    return f"{value:.2f} {unit}"


def log_cache_size(max_cache_size: int) -> None:
    if max_cache_size > 0:
        logger.info("Maximum raster cache size is set to %s", pretty_bytes(max_cache_size))
    else:
        logger.info("Maximum raster cache size is not limited")


def log_model(metadata: ModelMetadata) -> None:
    """Log the model description."""
    created = datetime.datetime.fromtimestamp(
        metadata.time_created, tz=datetime.timezone.utc
    ).strftime('%Y-%b-%d %H:%M:%S')
    width, height = metadata.model_size
    logger.info(
        "Model Name: %s; Version: %s; Created: %s",
        metadata.name, metadata.version, created,
    )
    logger.info("Description: %s", metadata.description)
    logger.info(
        "Dimensions (pixels): [%d x %d]; Color Mode: %s",
        width, height, metadata.color_mode,
    )
    logger.info("Bounding box (lat/lon): %s", metadata.bounding_box)
    logger.info("Labels: %s", ', '.join(metadata.labels))


class DetectionRun:
    """One configured detection run.

    Parameters
    ----------
    config : RunConfig
        Run settings.
    display : ProgressDisplay, optional
        Progress display for interactive runs.
    model : DetectionModel, optional
        Already loaded model. Loaded from ``config.model`` when omitted.

    Examples
    --------
    >>> config = RunConfig.from_yaml('ships.yaml')
    >>> report = DetectionRun(config, TqdmProgressDisplay()).run()
    >>> report.feature_count
    42
    """

    def __init__(
        self,
        config: RunConfig,
        display: Optional[ProgressDisplay] = None,
        model: Optional[DetectionModel] = None,
    ) -> None:
        self.config = config
        self.display = display
        self.model = model
        self.client: Optional[MapServiceClient] = None

    def open_image(self) -> GeoContext:
        config = self.config
        manager = CoordinateTransformManager(strict_bbox=config.strict_bbox)
        if config.source.is_remote:
            logger.info("Opening map service image...")
            self.client = MapServiceClient.for_source(
                config.source,
                zoom=config.zoom,
                token=config.token,
                credentials=config.credentials,
                map_id=config.map_id,
                url=config.url,
            )
            self.client.connect()
            return manager.from_map_service(self.client, config.bbox)

        logger.info("Opening local image...")
        with GeoTIFFReader(config.image) as reader:
            return manager.from_raster(reader.info, config.bbox)

    def load_model(self) -> DetectionModel:
        logger.info("Reading model...")
        if self.model is None:
            self.model = load_model(self.config.model, **self.config.model_options)
        log_model(self.model.metadata)
        return self.model

    def assemble(self) -> AssembledPipeline:
        """Everything up to, but excluding, execution."""
        config = self.config
        if config.source.is_remote or config.catalog_lookup:
            config.with_stored_credentials()

        geo = self.open_image()
        log_cache_size(config.max_cache_size)
        model = self.load_model()

        planner = WindowPlanner(
            model.metadata.model_size,
            model.default_step,
            window_sizes=config.window_sizes,
            window_steps=config.window_steps,
            resampled_size=config.resampled_size,
        )
        region_filter = RegionFilterBuilder(
            geo.bbox, geo.pixel_to_ll, geo.output_sr, config.filter_method,
        ).build(config.filters)

        return PipelineAssembler(
            config, geo, model, planner,
            region_filter=region_filter,
            client=self.client,
        ).assemble()

    def run(self) -> RunReport:
        pipeline = self.assemble()
        monitor = ExecutionMonitor(pipeline, self.display, quiet=self.config.quiet)
        return monitor.run()
