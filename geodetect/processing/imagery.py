# -*- coding: utf-8 -*-
"""
Imagery Nodes - From raster blocks to model-sized windows.

The front half of a detection pipeline::

    block source -> [remove alpha] -> block cache -> border
        -> [region filter] -> sliding window

Block sources read the area of interest in fixed-size blocks, either from a
local raster or from a web-mercator tile service. The block cache reads
ahead on its own thread through a bounded queue and mosaics the blocks into
a subset covering the area of interest. The border stage pads the subset so
windows anchored near its right and bottom edges stay complete, and the
sliding window cuts it into the windows of the window plan.

Image attributes (``image_size``, ``color_interps``, ``dtype``, ``bbox``,
``block_size``) are set on the source and read downstream through
``connect_attrs``.

Dependencies
------------
rasterio
requests
scipy

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
2026-03-08

Modified
--------
2026-03-18
"""

# Standard library
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterator, List, NamedTuple, Optional, Tuple

# Third-party
import numpy as np
from scipy import ndimage

# geodetect internal
from geodetect.IO.base import ALPHA
from geodetect.IO.geotiff import GeoTIFFReader
from geodetect.exceptions import ProcessingError
from geodetect.geolocation.box import PixelBox
from geodetect.planning.region_filter import RegionFilter
from geodetect.processing.node import (
    _MISSING,
    PortKind,
    SourceNode,
    TransformNode,
)

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = (512, 512)

# Poll interval of read-ahead threads waiting on a full queue.
_QUEUE_POLL = 0.1


class Block(NamedTuple):
    """Pixels of one block of the source image.

    Attributes
    ----------
    region : PixelBox
        Block rectangle in image pixels.
    data : np.ndarray
        Shape ``(bands, region.height, region.width)``.
    """

    region: PixelBox
    data: np.ndarray


class Subset(NamedTuple):
    """A rectangle of image pixels travelling towards the detector.

    Attributes
    ----------
    region : PixelBox
        Rectangle in image pixels the subset stands for.
    data : np.ndarray
        Shape ``(bands, rows, cols)``. May extend past *region* (border
        padding) or be resampled (sliding-window output).
    origin : Tuple[int, int]
        Image pixel of ``data[:, 0, 0]`` when *data* is at native
        resolution.
    region_filter : RegionFilter, optional
        Region limiting which windows are cut from this subset.
    """

    region: PixelBox
    data: np.ndarray
    origin: Tuple[int, int] = (0, 0)
    region_filter: Optional[RegionFilter] = None


def iter_blocks(bbox: PixelBox, block_size: Tuple[int, int]) -> Iterator[PixelBox]:
    """Tile *bbox* row-major into blocks of at most *block_size*."""
    bw, bh = block_size
    x0, y0, x1, y1 = bbox.bounds
    for y in range(y0, y1, bh):
        for x in range(x0, x1, bw):
            yield PixelBox(x, y, min(bw, x1 - x), min(bh, y1 - y))


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class GeoTiffBlockSource(SourceNode):
    """Read blocks of the area of interest from a local raster.

    Attributes
    ----------
    path : str
        Raster path.
    bbox : PixelBox
        Area of interest.
    block_size : Tuple[int, int]
        Block ``(width, height)``.
    """

    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def generate(self) -> Iterator[Block]:
        block_size = self.attr('block_size', DEFAULT_BLOCK_SIZE)
        with GeoTIFFReader(self.attr('path')) as reader:
            for region in iter_blocks(self.attr('bbox'), block_size):
                if self.cancelled:
                    return
                yield Block(region, reader.read_chip(region))


class MapServiceBlockSource(SourceNode):
    """Fetch the tiles covering the area of interest from a map service.

    Tiles are downloaded by a pool of ``max_connections`` threads and
    yielded in row-major order.

    Attributes
    ----------
    client : MapServiceClient
        Connected tile client.
    config : TileServiceConfig
        Tile ranges of the mosaic.
    bbox : PixelBox
        Area of interest in mosaic pixels.
    max_connections : int
        Concurrent tile requests.
    """

    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def _tiles(self) -> List[Tuple[int, int, PixelBox]]:
        config = self.attr('config')
        bbox = self.attr('bbox')
        size = config.tile_size
        col0, col1 = config.col_range
        row0, row1 = config.row_range
        tiles = []
        for row in range(row0, row1 + 1):
            for col in range(col0, col1 + 1):
                region = PixelBox((col - col0) * size, (row - row0) * size, size, size)
                if not region.intersection(bbox).is_empty:
                    tiles.append((col, row, region))
        return tiles

    def generate(self) -> Iterator[Block]:
        client = self.attr('client')
        config = self.attr('config')
        tiles = self._tiles()
        logger.debug("%s: fetching %d tiles", self.name, len(tiles))
        workers = max(1, int(self.attr('max_connections', 10)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                (region, pool.submit(client.fetch_tile, config, col, row))
                for col, row, region in tiles
            ]
            for region, future in futures:
                if self.cancelled:
                    for _, pending in futures:
                        pending.cancel()
                    return
                yield Block(region, future.result())


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------

class RemoveBandByColorInterp(TransformNode):
    """Drop every band with a given color interpretation.

    The node also rewrites ``color_interps`` for nodes reading attributes
    from it.
    """

    INPUTS = {'blocks': PortKind.BLOCKS}
    OUTPUTS = {'blocks': PortKind.BLOCKS}

    def _upstream_interps(self) -> Tuple[str, ...]:
        for source in reversed(self._attr_sources):
            value = source._lookup_attr('color_interps')
            if value is not _MISSING:
                return tuple(value)
        return ()

    def _lookup_attr(self, key: str) -> Any:
        if key == 'color_interps' and key not in self.attrs:
            interps = self._upstream_interps()
            if interps:
                remove = self.attrs.get('band_to_remove', ALPHA)
                return tuple(ci for ci in interps if ci != remove)
        return super()._lookup_attr(key)

    def process(self, items: Iterator[Block]) -> Iterator[Block]:
        remove = self.attr('band_to_remove', ALPHA)
        keep = [i for i, ci in enumerate(self._upstream_interps()) if ci != remove]
        for block in items:
            yield Block(block.region, block.data[keep] if keep else block.data)


class BlockCache(TransformNode):
    """Read blocks ahead of use and mosaic them into the area of interest.

    Blocks are read on a worker thread into a queue holding at most
    ``buffer_size`` bytes (``0`` for no limit), then pasted into one subset
    covering ``bbox``.

    ``buffer_size`` only bounds the blocks waiting in the queue. The mosaic
    itself always holds the whole area of interest, so peak memory is at
    least ``bbox.width * bbox.height * bands * itemsize`` bytes whatever
    the cache size.
    """

    INPUTS = {'blocks': PortKind.BLOCKS}
    OUTPUTS = {'subsets': PortKind.SUBSETS}

    def queue_length(self) -> int:
        """Number of blocks the read-ahead queue holds, 0 for unbounded."""
        buffer_size = int(self.attr('buffer_size', 0))
        if buffer_size <= 0:
            return 0
        bw, bh = self.attr('block_size', DEFAULT_BLOCK_SIZE)
        bands = max(1, len(self.attr('color_interps', ('gray',))))
        itemsize = np.dtype(self.attr('dtype', 'uint8')).itemsize
        return max(1, buffer_size // (bw * bh * bands * itemsize))

    def _read_ahead(self, items: Iterator[Block], buffer: queue.Queue, errors: list) -> None:
        try:
            for block in items:
                while not self.cancelled:
                    try:
                        buffer.put(block, timeout=_QUEUE_POLL)
                        break
                    except queue.Full:
                        continue
                if self.cancelled:
                    return
        except Exception as e:
            errors.append(e)
        finally:
            while True:
                try:
                    buffer.put(None, timeout=_QUEUE_POLL)
                    return
                except queue.Full:
                    if self.cancelled:
                        return

    def process(self, items: Iterator[Block]) -> Iterator[Subset]:
        bbox: PixelBox = self.attr('bbox')
        buffer: queue.Queue = queue.Queue(maxsize=self.queue_length())
        errors: list = []
        reader = threading.Thread(
            target=self._read_ahead, args=(items, buffer, errors),
            name=f"geodetect-{self.name}", daemon=True,
        )
        reader.start()

        mosaic = None
        while not self.cancelled:
            try:
                block = buffer.get(timeout=_QUEUE_POLL)
            except queue.Empty:
                continue
            if block is None:
                break
            if mosaic is None:
                mosaic = np.zeros(
                    (block.data.shape[0], bbox.height, bbox.width),
                    dtype=block.data.dtype,
                )
            overlap = block.region.intersection(bbox)
            if overlap.is_empty:
                continue
            sx, sy = overlap.x - block.region.x, overlap.y - block.region.y
            dx, dy = overlap.x - bbox.x, overlap.y - bbox.y
            mosaic[:, dy:dy + overlap.height, dx:dx + overlap.width] = \
                block.data[:, sy:sy + overlap.height, sx:sx + overlap.width]

        reader.join()
        if errors:
            raise ProcessingError(f"{self.name}: reading blocks failed: {errors[0]}") from errors[0]
        if mosaic is not None and not self.cancelled:
            yield Subset(bbox, mosaic, (bbox.x, bbox.y))


class SubsetWithBorder(TransformNode):
    """Pad subsets on the right and bottom edges.

    Padding is the larger of ``window_size`` and ``padded_size`` in each
    dimension, so every window anchored inside the subset region has data.
    """

    INPUTS = {'subsets': PortKind.SUBSETS}
    OUTPUTS = {'subsets': PortKind.SUBSETS}

    def border(self) -> Tuple[int, int]:
        width, height = self.attr('window_size', (0, 0))
        padded = self.attr('padded_size', None)
        if padded is not None:
            width, height = max(width, padded[0]), max(height, padded[1])
        return width, height

    def process(self, items: Iterator[Subset]) -> Iterator[Subset]:
        bx, by = self.border()
        for subset in items:
            if bx or by:
                data = np.pad(subset.data, ((0, 0), (0, by), (0, bx)))
                subset = subset._replace(data=data)
            yield subset


class SubsetRegionFilter(TransformNode):
    """Drop subsets outside the region filter and attach it to the rest."""

    INPUTS = {'subsets': PortKind.SUBSETS}
    OUTPUTS = {'subsets': PortKind.SUBSETS}

    def process(self, items: Iterator[Subset]) -> Iterator[Subset]:
        region_filter: RegionFilter = self.attr('region_filter')
        for subset in items:
            if region_filter.region.intersection(subset.region.to_polygon()).area <= 0:
                logger.debug("%s: skipping %s", self.name, subset.region)
                continue
            yield subset._replace(region_filter=region_filter)


def resample(data: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Bilinear resample of ``(bands, rows, cols)`` to ``size=(w, h)``."""
    width, height = size
    rows, cols = data.shape[1:]
    if (cols, rows) == (width, height):
        return data
    zoomed = ndimage.zoom(data, (1, height / rows, width / cols), order=1)
    fitted = np.zeros((data.shape[0], height, width), dtype=data.dtype)
    h, w = min(height, zoomed.shape[1]), min(width, zoomed.shape[2])
    fitted[:, :h, :w] = zoomed[:, :h, :w]
    return fitted


class SlidingWindow(TransformNode):
    """Cut subsets into the windows of the window plan.

    Attributes
    ----------
    window_plan : Tuple[WindowSpec, ...]
        Ordered ``(size, step)`` passes.
    resampled_size : Tuple[int, int], optional
        Size every window is resampled to. Windows keep their native
        resolution when unset.

    Metrics
    -------
    total
        Windows planned so far, after region filtering.
    forwarded
        Windows handed to the detector.
    """

    INPUTS = {'subsets': PortKind.SUBSETS}
    OUTPUTS = {'subsets': PortKind.SUBSETS}
    METRICS = ('total', 'forwarded')

    @staticmethod
    def windows_for(region: PixelBox, size, step) -> Iterator[PixelBox]:
        x0, y0, x1, y1 = region.bounds
        for y in range(y0, y1, step[1]):
            for x in range(x0, x1, step[0]):
                yield PixelBox(x, y, size[0], size[1])

    def process(self, items: Iterator[Subset]) -> Iterator[Subset]:
        plan = self.attr('window_plan')
        resampled_size = self.attr('resampled_size', None)
        for subset in items:
            windows = [
                window
                for spec in plan
                for window in self.windows_for(subset.region, spec.size, spec.step)
                if subset.region_filter is None or subset.region_filter.accepts(window)
            ]
            self.metric('total').increment(len(windows))
            ox, oy = subset.origin
            for window in windows:
                if self.cancelled:
                    return
                x, y = window.x - ox, window.y - oy
                chip = subset.data[:, y:y + window.height, x:x + window.width]
                if resampled_size is not None:
                    chip = resample(chip, resampled_size)
                self.metric('forwarded').increment()
                yield Subset(window, chip, (window.x, window.y))
