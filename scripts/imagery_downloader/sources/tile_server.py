"""
Slippy-map tile server fetcher.

Fetches individual tiles from any XYZ tile server whose URL template
contains ``{x}``, ``{y}`` and ``{z}`` placeholders, e.g.

    https://mt.google.com/vt/lyrs=s&x={x}&y={y}&z={z}

Failures never raise: a tile that cannot be fetched or decoded comes back
as a failed TileFetch and is left blank by the compositor.
"""

import io
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np
from numpy.typing import NDArray
import requests
from PIL import Image

from ..grid import TileIndex


log = logging.getLogger(__name__)

DEFAULT_TILE_URL = "https://mt.google.com/vt/lyrs=s&x={x}&y={y}&z={z}"
DEFAULT_TIMEOUT = 30.0


@dataclass
class TileFetch:
    """Outcome of fetching one tile."""

    index: TileIndex
    image: Optional[NDArray[np.uint8]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


def build_tile_url(url_template: str, index: TileIndex, zoom: int) -> str:
    """Substitute the first {x}, {y} and {z} placeholders."""
    return (
        url_template
        .replace("{x}", str(index.x), 1)
        .replace("{y}", str(index.y), 1)
        .replace("{z}", str(zoom), 1)
    )


def decode_tile(data: bytes, channels: int = 3) -> NDArray[np.uint8]:
    """Decode image bytes to an RGB (channels == 3) or RGBA array.

    Raises:
        PIL.UnidentifiedImageError: If the bytes are not an image
        PIL.Image.DecompressionBombError: If the declared size is too large
    """
    mode = "RGB" if channels == 3 else "RGBA"
    with Image.open(io.BytesIO(data)) as img:
        return np.array(img.convert(mode))


class TileSource:
    """Fetches and decodes tiles from an XYZ tile server."""

    def __init__(
        self,
        url_template: str = DEFAULT_TILE_URL,
        headers: Optional[Mapping[str, str]] = None,
        channels: int = 3,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize tile source.

        Args:
            url_template: URL pattern with {x}, {y}, {z} placeholders
            headers: Request headers sent with every tile request
            channels: 3 for RGB tiles, anything else for RGBA
            timeout: Per-request timeout in seconds
            session: Optional requests.Session for connection reuse
        """
        self.url_template = url_template
        self.channels = channels
        self.timeout = timeout
        # Shared by all row workers; only plain GETs go through it after setup
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(dict(headers))

    def url(self, index: TileIndex, zoom: int) -> str:
        return build_tile_url(self.url_template, index, zoom)

    def fetch(self, index: TileIndex, zoom: int) -> TileFetch:
        """Fetch a single tile.

        Args:
            index: Tile X/Y coordinates
            zoom: Zoom level

        Returns:
            TileFetch holding either the decoded image or the error text
        """
        url = self.url(index, zoom)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            image = decode_tile(response.content, self.channels)
        except (
            requests.RequestException,
            OSError,
            ValueError,
            Image.DecompressionBombError,
        ) as e:
            log.debug("Tile %s failed (%s): %s", index, url, e)
            return TileFetch(index, error=str(e) or type(e).__name__)
        return TileFetch(index, image=image)

    def close(self) -> None:
        self.session.close()


def fetch_tile(
    url_template: str,
    index: TileIndex,
    zoom: int,
    headers: Optional[Mapping[str, str]] = None,
    channels: int = 3,
    timeout: float = DEFAULT_TIMEOUT,
) -> TileFetch:
    """Convenience function to fetch one tile with a throwaway session."""
    source = TileSource(url_template, headers=headers, channels=channels, timeout=timeout)
    try:
        return source.fetch(index, zoom)
    finally:
        source.close()
