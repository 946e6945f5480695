"""
Raster allocation and tile compositing.

Tiles are copied channel-for-channel into the output raster with no
blending. A tile whose destination offset is negative on either axis is
dropped entirely unless clipping is requested, in which case only its
in-bounds part is copied.
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .grid import TileIndex


def raster_channels(channels: int) -> int:
    """3 selects RGB; any other value selects RGBA."""
    return 3 if channels == 3 else 4


def allocate_raster(width: int, height: int, channels: int = 3) -> NDArray[np.uint8]:
    """Create a zeroed (transparent when RGBA) output raster."""
    return np.zeros((height, width, raster_channels(channels)), dtype=np.uint8)


def tile_offset(
    index: TileIndex,
    tile_size: int,
    origin: tuple[int, int],
) -> tuple[int, int]:
    """Destination (x, y) of a tile's top-left pixel inside the raster."""
    return index.x * tile_size - origin[0], index.y * tile_size - origin[1]


def match_channels(tile: NDArray[np.uint8], channels: int) -> NDArray[np.uint8]:
    """Convert a tile to the raster's channel count.

    RGB tiles gain an opaque alpha channel; RGBA tiles lose theirs.
    """
    if tile.ndim == 2:
        tile = np.repeat(tile[..., None], 3, axis=-1)
    current = tile.shape[2]
    if current == channels:
        return tile
    if channels == 4 and current == 3:
        alpha = np.full(tile.shape[:2] + (1,), 255, dtype=np.uint8)
        return np.concatenate([tile, alpha], axis=-1)
    return tile[..., :channels]


def blit(
    raster: NDArray[np.uint8],
    tile: NDArray[np.uint8],
    offset: tuple[int, int],
    clip: bool = False,
) -> bool:
    """Copy ``tile`` into ``raster`` with its top-left pixel at ``offset``.

    Args:
        raster: Destination array (H, W, C), modified in place
        tile: Source array (h, w, C')
        offset: Destination (x, y), may be negative
        clip: Clip negative offsets instead of dropping the tile

    Returns:
        True if any pixels were written
    """
    off_x, off_y = offset
    if not clip and (off_x < 0 or off_y < 0):
        return False

    raster_h, raster_w = raster.shape[:2]
    tile_h, tile_w = tile.shape[:2]

    # Portion of the tile hanging off the left/top edge
    src_x = max(0, -off_x)
    src_y = max(0, -off_y)
    dst_x = max(0, off_x)
    dst_y = max(0, off_y)

    copy_w = min(tile_w - src_x, raster_w - dst_x)
    copy_h = min(tile_h - src_y, raster_h - dst_y)
    if copy_w <= 0 or copy_h <= 0:
        return False

    tile = match_channels(tile, raster.shape[2])
    raster[dst_y:dst_y + copy_h, dst_x:dst_x + copy_w] = (
        tile[src_y:src_y + copy_h, src_x:src_x + copy_w]
    )
    return True


def composite_tile(
    raster: NDArray[np.uint8],
    tile: NDArray[np.uint8],
    index: TileIndex,
    tile_size: int,
    origin: tuple[int, int],
    clip: bool = False,
) -> bool:
    """Write a fetched tile into its region of the output raster.

    Args:
        raster: Output raster, modified in place
        tile: Decoded tile image
        index: Tile coordinates
        tile_size: Nominal tile edge length in pixels
        origin: World pixel coordinates of the raster's top-left corner
        clip: Clip instead of dropping tiles that start before the origin

    Returns:
        True if the tile was placed, False if it was dropped
    """
    return blit(raster, tile, tile_offset(index, tile_size, origin), clip=clip)


def fill_ratio(raster: NDArray[np.uint8], region: Optional[tuple[slice, slice]] = None) -> float:
    """Fraction of pixels with any non-zero channel."""
    data = raster[region] if region is not None else raster
    if data.size == 0:
        return 0.0
    return float(np.any(data != 0, axis=-1).mean())
