"""
Downloader configuration.

Settings live in a JSON preferences file (``preferences.json`` by default).
A file with sensible defaults is written on first use; command-line options
override individual values.

Preferences schema:
    {
      "url": "https://mt.google.com/vt/lyrs=s&x={x}&y={y}&z={z}",
      "tile_size": 256,
      "dir": "/abs/path/images",
      "headers": {"user-agent": "...", ...},
      "tl": "52.70867508992417, 5.68805453553596",
      "br": "52.55494609768789, 5.879032918935248",
      "zoom": 13,
      "channels": 4,        # optional
      "timeout": 30,        # optional, seconds per request
      "workers": 8          # optional
    }
"""

import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from .downloader import DEFAULT_WORKERS
from .projection import GeoPoint, MAX_ZOOM, MIN_ZOOM
from .sources.tile_server import DEFAULT_TILE_URL, DEFAULT_TIMEOUT


DEFAULT_PREFS_PATH = Path("preferences.json")
DEFAULT_TILE_SIZE = 256
DEFAULT_CHANNELS = 4

SUPPORTED_CHANNELS = (3, 4)
PLACEHOLDERS = ("{x}", "{y}", "{z}")

# Browser-like headers; some tile servers reject obvious scripts
DEFAULT_HEADERS: dict[str, str] = {
    "cache-control": "max-age=0",
    "sec-ch-ua": '" Not A;Brand";v="99", "Chromium";v="99", "Google Chrome";v="99"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "document",
    "sec-fetch-mode": "navigate",
    "sec-fetch-site": "none",
    "sec-fetch-user": "?1",
    "upgrade-insecure-requests": "1",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/99.0.4844.82 Safari/537.36"
    ),
}

_NUMBER_RE = re.compile(r"[+-]?\d*\.\d+|\d+")


class ConfigError(ValueError):
    """Invalid or incomplete downloader settings."""


def parse_coordinates(text: str) -> GeoPoint:
    """Parse a "lat, lon" string such as "(52.70867, 5.68805)".

    Any two numbers in the string are accepted; separators and brackets
    are ignored.

    Raises:
        ConfigError: If the string does not hold exactly two numbers
    """
    numbers = [float(m) for m in _NUMBER_RE.findall(text or "")]
    if len(numbers) != 2:
        raise ConfigError(
            "Invalid coordinates format. Expected two pairs of latitude and longitude."
        )
    return GeoPoint(numbers[0], numbers[1])


def default_preferences(image_dir: Optional[Path] = None) -> dict[str, Any]:
    """Preferences written when no file exists yet."""
    image_dir = image_dir or Path.cwd() / "images"
    return {
        "url": DEFAULT_TILE_URL,
        "tile_size": DEFAULT_TILE_SIZE,
        "dir": str(image_dir),
        "headers": dict(DEFAULT_HEADERS),
        "tl": "",
        "br": "",
        "zoom": "",
    }


def load_preferences(path: Path = DEFAULT_PREFS_PATH, create: bool = True) -> dict[str, Any]:
    """Read the preferences file, writing the defaults first if it is missing.

    Raises:
        ConfigError: If the file is missing (and ``create`` is False) or
            is not a JSON object
    """
    path = Path(path)
    if not path.exists():
        if not create:
            raise ConfigError(f"Preferences file not found: {path}")
        path.write_text(json.dumps(default_preferences(), indent=2))

    try:
        prefs = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse preferences file {path}: {e}") from e
    if not isinstance(prefs, dict):
        raise ConfigError(f"Preferences file {path} must contain a JSON object")
    return prefs


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


def _optional_point(value: Any) -> Optional[GeoPoint]:
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return parse_coordinates(str(value))


@dataclass
class DownloaderConfig:
    """Resolved settings for one download run."""

    url: str = DEFAULT_TILE_URL
    tile_size: int = DEFAULT_TILE_SIZE
    channels: int = DEFAULT_CHANNELS
    out_dir: Path = field(default_factory=lambda: Path("images"))
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    top_left: Optional[GeoPoint] = None
    bottom_right: Optional[GeoPoint] = None
    zoom: Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS

    @classmethod
    def from_preferences(cls, prefs: dict[str, Any]) -> "DownloaderConfig":
        """Build a config from a parsed preferences mapping."""
        config = cls()
        headers = prefs.get("headers") or {}
        if not isinstance(headers, dict):
            raise ConfigError("headers must be a JSON object")

        tile_size = _optional_int(prefs.get("tile_size"), "tile_size")
        channels = _optional_int(prefs.get("channels"), "channels")
        workers = _optional_int(prefs.get("workers"), "workers")
        timeout = _optional_float(prefs.get("timeout"), "timeout")

        return replace(
            config,
            url=prefs.get("url") or config.url,
            tile_size=tile_size if tile_size is not None else config.tile_size,
            channels=channels if channels is not None else config.channels,
            out_dir=Path(prefs["dir"]) if prefs.get("dir") else config.out_dir,
            # Non-string header values are ignored
            headers={k: v for k, v in headers.items() if isinstance(v, str)},
            top_left=_optional_point(prefs.get("tl")),
            bottom_right=_optional_point(prefs.get("br")),
            zoom=_optional_int(prefs.get("zoom"), "zoom"),
            timeout=timeout if timeout is not None else config.timeout,
            workers=workers if workers is not None else config.workers,
        )

    @classmethod
    def load(cls, path: Path = DEFAULT_PREFS_PATH) -> "DownloaderConfig":
        return cls.from_preferences(load_preferences(path))

    def with_overrides(self, **overrides: Any) -> "DownloaderConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def missing_placeholders(self) -> list[str]:
        return [p for p in PLACEHOLDERS if p not in self.url]

    def validate(self) -> None:
        """Check that the config is complete enough to download.

        Raises:
            ConfigError: On the first problem found
        """
        if self.top_left is None or self.bottom_right is None:
            raise ConfigError(
                "Invalid coordinates format. Expected two pairs of latitude and longitude."
            )
        if self.zoom is None:
            raise ConfigError("Zoom level is required.")
        if not MIN_ZOOM <= self.zoom <= MAX_ZOOM:
            raise ConfigError(f"Zoom level must be between {MIN_ZOOM} and {MAX_ZOOM}, got {self.zoom}")
        if self.channels not in SUPPORTED_CHANNELS:
            raise ConfigError(f"channels must be 3 (RGB) or 4 (RGBA), got {self.channels}")
        if self.tile_size <= 0:
            raise ConfigError(f"tile_size must be positive, got {self.tile_size}")
        if self.workers < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
