#!/usr/bin/env python3
"""Pytest configuration and shared fixtures."""
import io
import re
import struct
import tempfile
import threading
import zlib
from pathlib import Path

import pytest
import requests
from PIL import Image


TEST_TEMPLATE = "http://tiles.test/{z}/{x}/{y}.png"

_TILE_URL_RE = re.compile(r"/(\d+)/(\d+)/(\d+)\.png$")


def tile_color(x: int, y: int) -> tuple[int, int, int]:
    """Distinct, never-black solid colour for tile (x, y)."""
    return ((x * 37) % 200 + 30, (y * 53) % 200 + 30, 128)


def png_bytes(color, size: int = 256, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


def oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """A few bytes of PNG whose header declares a huge image."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data)) + kind + data
            + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)
        )

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b""))
        + chunk(b"IEND", b"")
    )


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records requested URLs and answers them through ``handler``."""

    def __init__(self, handler):
        self.handler = handler
        self.headers: dict = {}
        self.urls: list[str] = []
        self.timeouts: list = []
        self._lock = threading.Lock()

    def get(self, url, timeout=None):
        with self._lock:
            self.urls.append(url)
            self.timeouts.append(timeout)
        return self.handler(url)

    def close(self) -> None:
        pass


def solid_tile_handler(tile_size: int = 256, mode: str = "RGB"):
    """Serve a solid-colour PNG per tile, keyed on the {x}/{y} in the URL."""

    def handler(url: str) -> FakeResponse:
        match = _TILE_URL_RE.search(url)
        if not match:
            return FakeResponse(404)
        x, y = int(match.group(2)), int(match.group(3))
        color = tile_color(x, y)
        if mode == "RGBA":
            color = color + (255,)
        return FakeResponse(200, png_bytes(color, tile_size, mode))

    return handler


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def solid_session():
    """Session serving 256px solid-colour RGB tiles."""
    return FakeSession(solid_tile_handler())


@pytest.fixture
def failing_session():
    """Session whose every request comes back as a server error."""
    return FakeSession(lambda url: FakeResponse(500, b"Internal Server Error"))


@pytest.fixture
def sample_preferences():
    """Preferences mapping as found in preferences.json."""
    return {
        "url": TEST_TEMPLATE,
        "tile_size": 256,
        "dir": "images",
        "headers": {"user-agent": "pytest", "x-ignored": 5},
        "tl": "52.70867508992417, 5.68805453553596",
        "br": "(52.55494609768789, 5.879032918935248)",
        "zoom": 13,
    }
