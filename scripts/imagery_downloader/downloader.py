"""
Bounding-box imagery download.

Resolves the tile grid for a bounding box, fetches every tile in parallel
and composites the results into a single raster.

Each tile row is one unit of work. A row's worker owns the band of raster
rows that its tiles cover, so workers never write to the same pixels and no
lock is needed around the pixel copies. Workers report per-tile outcomes on
a queue; the calling thread is the only consumer and drives the progress
bar, the callback and the result manifests.
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional

import numpy as np
from numpy.typing import NDArray
from tqdm import tqdm

from .compositor import allocate_raster, composite_tile
from .grid import TileGrid, TileIndex, resolve_grid
from .projection import GeoPoint
from .sources.tile_server import DEFAULT_TIMEOUT, TileSource


log = logging.getLogger(__name__)

DEFAULT_WORKERS = 8

# Seconds between checks of the deadline/cancel token while waiting
POLL_INTERVAL = 0.1


class TileStatus(Enum):
    """What happened to a tile."""

    PLACED = "placed"
    SKIPPED = "skipped"  # fetched, but dropped by the compositor
    FAILED = "failed"


@dataclass(frozen=True)
class TileReport:
    """Per-tile progress message sent from workers."""

    index: TileIndex
    status: TileStatus
    error: Optional[str] = None


@dataclass
class DownloadResult:
    """Assembled raster plus a manifest of what did not make it in."""

    image: NDArray[np.uint8]
    grid: TileGrid
    failed: list[TileIndex] = field(default_factory=list)
    skipped: list[TileIndex] = field(default_factory=list)
    pending: list[TileIndex] = field(default_factory=list)
    cancelled: bool = False

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def channels(self) -> int:
        return self.image.shape[2]

    @property
    def tiles_total(self) -> int:
        return self.grid.tile_count

    @property
    def complete(self) -> bool:
        """True when nothing failed and the run was not cancelled."""
        return not self.failed and not self.cancelled


def _sort_key(index: TileIndex) -> tuple[int, int]:
    return index.y, index.x


class TileDownloader:
    """Downloads and stitches the tiles covering a bounding box."""

    def __init__(
        self,
        source: TileSource,
        tile_size: int = 256,
        workers: int = DEFAULT_WORKERS,
        clip: bool = False,
    ):
        """Initialize downloader.

        Args:
            source: Tile source used for every fetch
            tile_size: Tile edge length in pixels
            workers: Number of parallel row workers
            clip: Clip tiles that start before the raster origin instead
                of dropping them
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.source = source
        self.tile_size = tile_size
        self.workers = workers
        self.clip = clip

    def _process_row(
        self,
        raster: NDArray[np.uint8],
        grid: TileGrid,
        tile_y: int,
        reports: "queue.Queue[TileReport]",
        cancel: threading.Event,
    ) -> None:
        """Fetch and composite every tile in one tile row."""
        start, stop = grid.row_band(tile_y)
        band = raster[start:stop]
        origin = (grid.tl_pixel_x, grid.tl_pixel_y + start)

        for tile_x in grid.columns():
            if cancel.is_set():
                return
            index = TileIndex(tile_x, tile_y)
            fetched = self.source.fetch(index, grid.zoom)
            if not fetched.ok:
                reports.put(TileReport(index, TileStatus.FAILED, fetched.error))
                continue
            if cancel.is_set():
                return
            placed = composite_tile(
                band, fetched.image, index, grid.tile_size, origin, clip=self.clip
            )
            reports.put(TileReport(index, TileStatus.PLACED if placed else TileStatus.SKIPPED))

    def download_grid(
        self,
        grid: TileGrid,
        channels: int = 3,
        progress: bool = True,
        on_tile_complete: Optional[Callable[[TileReport], None]] = None,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> DownloadResult:
        """Download every tile of a resolved grid.

        Args:
            grid: Resolved tile grid
            channels: 3 for an RGB raster, anything else for RGBA
            progress: Show progress bar
            on_tile_complete: Callback after each tile, called on this thread
            cancel: Event that stops the download when set
            deadline: Overall time limit in seconds

        Returns:
            DownloadResult; unfinished tiles are listed in ``pending`` when
            the download was cancelled or ran out of time
        """
        raster = allocate_raster(grid.width, grid.height, channels)
        cancel = cancel or threading.Event()
        reports: "queue.Queue[TileReport]" = queue.Queue()
        expires = time.monotonic() + deadline if deadline is not None else None
        total = grid.tile_count
        seen: dict[TileIndex, TileReport] = {}
        cancelled = False

        log.info(
            "Downloading %d tiles at zoom %d into %dx%d raster",
            total, grid.zoom, grid.width, grid.height,
        )

        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="tile-row")
        futures: list[Future] = [
            executor.submit(self._process_row, raster, grid, tile_y, reports, cancel)
            for tile_y in grid.rows()
        ]
        bar = tqdm(total=total, desc="Downloading tiles", unit="tile", disable=not progress)
        try:
            while len(seen) < total:
                if cancel.is_set():
                    cancelled = True
                    break
                if expires is not None and time.monotonic() >= expires:
                    log.warning("Deadline of %.1fs reached, cancelling download", deadline)
                    cancel.set()
                    cancelled = True
                    break
                try:
                    report = reports.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    if all(f.done() for f in futures) and reports.empty():
                        break
                    continue

                seen[report.index] = report
                bar.update(1)
                if on_tile_complete:
                    on_tile_complete(report)
        except BaseException:
            cancel.set()
            raise
        finally:
            bar.close()
            stopping = cancel.is_set()
            executor.shutdown(wait=not stopping, cancel_futures=stopping)

        if not cancelled:
            for future in futures:
                error = future.exception()
                if error is not None:
                    raise error

        failed = sorted(
            (i for i, r in seen.items() if r.status is TileStatus.FAILED), key=_sort_key
        )
        skipped = sorted(
            (i for i, r in seen.items() if r.status is TileStatus.SKIPPED), key=_sort_key
        )
        pending = [i for i in grid.tiles() if i not in seen]

        if failed:
            log.warning("%d of %d tiles failed and were left blank", len(failed), total)
        log.info("Processed %d of %d tiles", len(seen), total)

        return DownloadResult(
            # Late workers may still write after a cancel; hand out a snapshot
            image=raster.copy() if cancelled else raster,
            grid=grid,
            failed=failed,
            skipped=skipped,
            pending=pending,
            cancelled=cancelled,
        )

    def download(
        self,
        top_left: GeoPoint,
        bottom_right: GeoPoint,
        zoom: int,
        channels: int = 3,
        progress: bool = True,
        on_tile_complete: Optional[Callable[[TileReport], None]] = None,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> DownloadResult:
        """Download the raster covering a bounding box."""
        grid = resolve_grid(top_left, bottom_right, zoom, self.tile_size)
        return self.download_grid(
            grid,
            channels=channels,
            progress=progress,
            on_tile_complete=on_tile_complete,
            cancel=cancel,
            deadline=deadline,
        )


def download_image(
    top_left: GeoPoint,
    bottom_right: GeoPoint,
    zoom: int,
    url_template: str,
    headers: Optional[Mapping[str, str]] = None,
    tile_size: int = 256,
    channels: int = 3,
    workers: int = DEFAULT_WORKERS,
    timeout: float = DEFAULT_TIMEOUT,
    clip: bool = False,
    progress: bool = True,
    cancel: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
) -> DownloadResult:
    """Convenience function to download a bounding box in one call.

    Args:
        top_left: North-west corner
        bottom_right: South-east corner
        zoom: Zoom level
        url_template: Tile URL with {x}, {y}, {z} placeholders
        headers: HTTP headers for every tile request
        tile_size: Tile edge length in pixels
        channels: 3 for RGB, anything else for RGBA
        workers: Parallel row workers
        timeout: Per-request timeout in seconds
        clip: Clip edge tiles instead of dropping them
        progress: Show progress bar
        cancel: Event that stops the download when set
        deadline: Overall time limit in seconds

    Returns:
        DownloadResult with the assembled raster
    """
    source = TileSource(url_template, headers=headers, channels=channels, timeout=timeout)
    try:
        downloader = TileDownloader(source, tile_size=tile_size, workers=workers, clip=clip)
        return downloader.download(
            top_left,
            bottom_right,
            zoom,
            channels=channels,
            progress=progress,
            cancel=cancel,
            deadline=deadline,
        )
    finally:
        source.close()
