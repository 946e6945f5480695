#!/usr/bin/env python3
"""Tests for the XYZ tile fetcher."""
import sys
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import (
    TEST_TEMPLATE,
    FakeResponse,
    FakeSession,
    oversized_png,
    png_bytes,
    tile_color,
)
from imagery_downloader.grid import TileIndex
from imagery_downloader.sources.tile_server import (
    TileFetch,
    TileSource,
    build_tile_url,
    decode_tile,
    fetch_tile,
)


class TestBuildTileUrl:
    """Tests for URL template substitution."""

    def test_google_style_template(self):
        url = build_tile_url(
            "https://mt.google.com/vt/lyrs=s&x={x}&y={y}&z={z}", TileIndex(4225, 2693), 13
        )
        assert url == "https://mt.google.com/vt/lyrs=s&x=4225&y=2693&z=13"

    def test_path_style_template(self):
        assert build_tile_url(TEST_TEMPLATE, TileIndex(1, 2), 3) == "http://tiles.test/3/1/2.png"

    def test_only_first_placeholder_replaced(self):
        url = build_tile_url("{x}/{x}/{y}/{z}", TileIndex(7, 8), 9)
        assert url == "7/{x}/8/9"

    def test_missing_placeholder_left_alone(self):
        assert build_tile_url("http://a/{z}", TileIndex(1, 2), 3) == "http://a/3"


class TestDecodeTile:
    """Tests for decode_tile()."""

    def test_rgb(self):
        image = decode_tile(png_bytes((10, 20, 30), 8), channels=3)
        assert image.shape == (8, 8, 3)
        assert (image == (10, 20, 30)).all()

    def test_rgb_source_decoded_as_rgba(self):
        """Test any channel count other than 3 yields RGBA."""
        image = decode_tile(png_bytes((10, 20, 30), 8), channels=4)
        assert image.shape == (8, 8, 4)
        assert (image[..., 3] == 255).all()

    def test_garbage_raises(self):
        with pytest.raises(OSError):
            decode_tile(b"not an image")


class TestTileSource:
    """Tests for TileSource.fetch()."""

    def test_success(self, solid_session):
        source = TileSource(TEST_TEMPLATE, session=solid_session)
        fetched = source.fetch(TileIndex(5, 6), 4)

        assert isinstance(fetched, TileFetch)
        assert fetched.ok
        assert fetched.error is None
        assert fetched.image.shape == (256, 256, 3)
        assert (fetched.image == tile_color(5, 6)).all()
        assert solid_session.urls == ["http://tiles.test/4/5/6.png"]

    def test_headers_and_timeout_applied(self, solid_session):
        source = TileSource(
            TEST_TEMPLATE,
            headers={"user-agent": "Mozilla/5.0"},
            timeout=5.0,
            session=solid_session,
        )
        source.fetch(TileIndex(0, 0), 1)
        assert solid_session.headers["user-agent"] == "Mozilla/5.0"
        assert solid_session.timeouts == [5.0]

    def test_http_error_is_failed_outcome(self, failing_session):
        """Test server errors come back as failures, not exceptions."""
        source = TileSource(TEST_TEMPLATE, session=failing_session)
        fetched = source.fetch(TileIndex(1, 1), 2)
        assert not fetched.ok
        assert fetched.image is None
        assert "500" in fetched.error

    def test_network_error_is_failed_outcome(self):
        def boom(url):
            raise requests.ConnectionError("connection refused")

        source = TileSource(TEST_TEMPLATE, session=FakeSession(boom))
        fetched = source.fetch(TileIndex(1, 1), 2)
        assert not fetched.ok
        assert "connection refused" in fetched.error

    def test_undecodable_body_is_failed_outcome(self):
        session = FakeSession(lambda url: FakeResponse(200, b"<html>blocked</html>"))
        fetched = TileSource(TEST_TEMPLATE, session=session).fetch(TileIndex(0, 0), 0)
        assert not fetched.ok
        assert fetched.error

    def test_oversized_image_is_failed_outcome(self):
        """Test a header declaring a huge image fails the tile only."""
        session = FakeSession(lambda url: FakeResponse(200, oversized_png()))
        fetched = TileSource(TEST_TEMPLATE, session=session).fetch(TileIndex(0, 0), 0)
        assert not fetched.ok
        assert fetched.image is None
        assert "exceeds limit" in fetched.error

    def test_rgba_channels(self):
        session = FakeSession(lambda url: FakeResponse(200, png_bytes((1, 2, 3, 128), 4, "RGBA")))
        fetched = TileSource(TEST_TEMPLATE, channels=4, session=session).fetch(TileIndex(0, 0), 0)
        assert fetched.image.shape == (4, 4, 4)
        assert (fetched.image == (1, 2, 3, 128)).all()


class TestFetchTile:
    """Tests for the functional fetch_tile() wrapper."""

    def test_uses_requests_session(self, solid_session):
        with patch("imagery_downloader.sources.tile_server.requests.Session", return_value=solid_session):
            fetched = fetch_tile(TEST_TEMPLATE, TileIndex(2, 3), 5, headers={"a": "b"}, channels=3)
        assert fetched.ok
        assert solid_session.headers == {"a": "b"}
        assert np.array_equal(fetched.image[0, 0], tile_color(2, 3))
