"""
Satellite Imagery Downloader

Downloads a rectangular area from any slippy-map (XYZ) tile server and
stitches the tiles into a single image:
- Web Mercator projection of the bounding-box corners
- Tile range and output raster size resolution
- Parallel tile fetching (one worker per tile row)
- Pixel-exact compositing into one RGB/RGBA raster

Usage:
    from imagery_downloader import GeoPoint, download_image

    result = download_image(
        GeoPoint(52.70868, 5.68805),
        GeoPoint(52.55495, 5.87903),
        zoom=13,
        url_template="https://mt.google.com/vt/lyrs=s&x={x}&y={y}&z={z}",
    )
    result.image      # numpy array (H, W, C)
    result.failed     # tiles that could not be fetched

    # Command line
    imagery-downloader download -t "52.70868, 5.68805" -b "52.55495, 5.87903" -z 13
"""

from .projection import GeoPoint, ProjectedPoint, project, project_point, zoom_scale
from .grid import (
    TileGrid,
    TileIndex,
    estimate_tiles,
    grid_from_projected,
    image_size,
    resolve_grid,
)
from .compositor import allocate_raster, composite_tile, tile_offset
from .sources import TileFetch, TileSource, build_tile_url, fetch_tile
from .downloader import (
    DownloadResult,
    TileDownloader,
    TileReport,
    TileStatus,
    download_image,
)
from .config import ConfigError, DownloaderConfig, load_preferences, parse_coordinates
from .output import save_image

__all__ = [
    # Projection
    "GeoPoint",
    "ProjectedPoint",
    "project",
    "project_point",
    "zoom_scale",
    # Grid
    "TileGrid",
    "TileIndex",
    "resolve_grid",
    "grid_from_projected",
    "image_size",
    "estimate_tiles",
    # Compositing
    "allocate_raster",
    "composite_tile",
    "tile_offset",
    # Fetching
    "TileFetch",
    "TileSource",
    "build_tile_url",
    "fetch_tile",
    # Download
    "DownloadResult",
    "TileDownloader",
    "TileReport",
    "TileStatus",
    "download_image",
    # Config & output
    "ConfigError",
    "DownloaderConfig",
    "load_preferences",
    "parse_coordinates",
    "save_image",
]
__version__ = "0.1.0"
