"""
Tile sources for the imagery downloader.

Provides access to XYZ slippy-map tile servers (Google, Esri, OSM and
compatible services).
"""

from .tile_server import (
    DEFAULT_TILE_URL,
    TileFetch,
    TileSource,
    build_tile_url,
    decode_tile,
    fetch_tile,
)

__all__ = [
    "DEFAULT_TILE_URL",
    "TileFetch",
    "TileSource",
    "build_tile_url",
    "decode_tile",
    "fetch_tile",
]
