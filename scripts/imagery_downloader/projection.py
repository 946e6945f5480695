"""
Web Mercator projection helpers.

Maps geographic coordinates (WGS84 degrees) onto the continuous tile plane
used by slippy-map servers. At zoom ``z`` the world spans ``[0, 2^z)`` tile
units on each axis:

    x = scale * (0.5 + lon / 360)
    y = scale * (0.5 - ln((1 + sin φ) / (1 - sin φ)) / 4π)

The sine is clamped to ±0.9999 so the poles never reach ±∞.
"""

import math
from dataclasses import dataclass

# Conventional slippy-map zoom range
MIN_ZOOM = 0
MAX_ZOOM = 22

SIN_LAT_LIMIT = 0.9999


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 location in degrees."""

    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"({self.latitude}, {self.longitude})"


@dataclass(frozen=True)
class ProjectedPoint:
    """Continuous Web Mercator coordinates in tile units."""

    x: float
    y: float


def zoom_scale(zoom: int) -> int:
    """Number of tiles per axis at ``zoom``."""
    return 1 << zoom


def project(lat: float, lon: float, scale: float) -> ProjectedPoint:
    """Project a latitude/longitude pair onto the tile plane.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        scale: Tiles per axis (``2 ** zoom``)

    Returns:
        Projected point in tile units

    Out-of-range inputs are not rejected; they extrapolate to meaningless
    but finite values.
    """
    siny = math.sin(math.radians(lat))
    siny = min(max(siny, -SIN_LAT_LIMIT), SIN_LAT_LIMIT)

    x = scale * (0.5 + lon / 360.0)
    y = scale * (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi))
    return ProjectedPoint(x, y)


def project_point(point: GeoPoint, zoom: int) -> ProjectedPoint:
    """Project a GeoPoint at the given zoom level."""
    return project(point.latitude, point.longitude, zoom_scale(zoom))
