"""
Tile grid resolution.

Turns a pair of bounding-box corners into the integer tile range to fetch and
the pixel window of the output raster. Tiles are iterated from the top-left
tile index to the bottom-right one, inclusive on both axes.
"""

from dataclasses import dataclass
from typing import Iterator

from .projection import GeoPoint, ProjectedPoint, MAX_ZOOM, MIN_ZOOM, project_point


@dataclass(frozen=True)
class TileIndex:
    """Integer tile coordinates at a fixed zoom level."""

    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.x}/{self.y}"


@dataclass(frozen=True)
class TileGrid:
    """Resolved tile and pixel ranges for a bounding box."""

    zoom: int
    tile_size: int

    # Pixel-space corners (projected coordinate * tile_size, truncated)
    tl_pixel_x: int
    tl_pixel_y: int
    br_pixel_x: int
    br_pixel_y: int

    # Tile-space corners (projected coordinate, truncated)
    tl_tile_x: int
    tl_tile_y: int
    br_tile_x: int
    br_tile_y: int

    @property
    def width(self) -> int:
        return abs(self.br_pixel_x - self.tl_pixel_x)

    @property
    def height(self) -> int:
        return abs(self.br_pixel_y - self.tl_pixel_y)

    @property
    def size(self) -> tuple[int, int]:
        """Output raster dimensions as (width, height)."""
        return self.width, self.height

    @property
    def origin(self) -> tuple[int, int]:
        """Top-left pixel of the raster in world pixel space."""
        return self.tl_pixel_x, self.tl_pixel_y

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def columns(self) -> range:
        return range(self.tl_tile_x, self.br_tile_x + 1)

    def rows(self) -> range:
        return range(self.tl_tile_y, self.br_tile_y + 1)

    @property
    def tile_count(self) -> int:
        return len(self.columns()) * len(self.rows())

    def tiles(self) -> Iterator[TileIndex]:
        """Iterate tile indices row by row."""
        for tile_y in self.rows():
            for tile_x in self.columns():
                yield TileIndex(tile_x, tile_y)

    def row_band(self, tile_y: int) -> tuple[int, int]:
        """Raster rows [start, stop) covered by tile row ``tile_y``.

        Bands of distinct tile rows never overlap, so each row can be
        written by its own worker without locking.
        """
        top = tile_y * self.tile_size - self.tl_pixel_y
        start = min(max(top, 0), self.height)
        stop = min(max(top + self.tile_size, 0), self.height)
        return start, stop


def _pixel(value: float, tile_size: int) -> int:
    return int(value * tile_size)


def grid_from_projected(
    top_left: ProjectedPoint,
    bottom_right: ProjectedPoint,
    zoom: int,
    tile_size: int = 256,
) -> TileGrid:
    """Build a TileGrid from already-projected corners."""
    if tile_size <= 0:
        raise ValueError(f"Tile size must be positive, got {tile_size}")

    return TileGrid(
        zoom=zoom,
        tile_size=tile_size,
        tl_pixel_x=_pixel(top_left.x, tile_size),
        tl_pixel_y=_pixel(top_left.y, tile_size),
        br_pixel_x=_pixel(bottom_right.x, tile_size),
        br_pixel_y=_pixel(bottom_right.y, tile_size),
        tl_tile_x=int(top_left.x),
        tl_tile_y=int(top_left.y),
        br_tile_x=int(bottom_right.x),
        br_tile_y=int(bottom_right.y),
    )


def resolve_grid(
    top_left: GeoPoint,
    bottom_right: GeoPoint,
    zoom: int,
    tile_size: int = 256,
) -> TileGrid:
    """Compute the tile range and raster window for a bounding box.

    Args:
        top_left: North-west corner
        bottom_right: South-east corner
        zoom: Zoom level
        tile_size: Tile edge length in pixels

    Returns:
        Resolved TileGrid

    Corners given in the opposite order still produce positive raster
    dimensions, but the tile range then runs backwards and is empty.
    """
    if not MIN_ZOOM <= zoom <= MAX_ZOOM:
        raise ValueError(f"Zoom level must be in {MIN_ZOOM}..{MAX_ZOOM}, got {zoom}")

    return grid_from_projected(
        project_point(top_left, zoom),
        project_point(bottom_right, zoom),
        zoom,
        tile_size,
    )


def image_size(
    top_left: GeoPoint,
    bottom_right: GeoPoint,
    zoom: int,
    tile_size: int = 256,
) -> tuple[int, int]:
    """Output raster (width, height) for a bounding box."""
    return resolve_grid(top_left, bottom_right, zoom, tile_size).size


def estimate_tiles(
    top_left: GeoPoint,
    bottom_right: GeoPoint,
    zoom: int,
) -> int:
    """Number of tile requests a download of the box would issue."""
    return resolve_grid(top_left, bottom_right, zoom).tile_count
