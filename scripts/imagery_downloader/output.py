"""
Saving downloaded rasters and opening them for viewing.
"""

import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
from numpy.typing import NDArray
from PIL import Image


log = logging.getLogger(__name__)


def image_filename(timestamp: Optional[datetime] = None, suffix: str = ".png") -> str:
    """Timestamped output name, e.g. ``img_20240131235959.png``."""
    timestamp = timestamp or datetime.now()
    return f"img_{timestamp:%Y%m%d%H%M%S}{suffix}"


def save_image(
    image: NDArray[np.uint8],
    out_dir: Path,
    timestamp: Optional[datetime] = None,
) -> Path:
    """Write an RGB/RGBA raster as PNG into ``out_dir``.

    Args:
        image: Raster of shape (H, W, 3) or (H, W, 4)
        out_dir: Output directory, created if missing
        timestamp: Time used for the file name (default: now)

    Returns:
        Path to the saved image
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / image_filename(timestamp)
    Image.fromarray(image).save(path, format="PNG")
    log.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], path)
    return path


def open_in_viewer(path: Path) -> None:
    """Open a file with the platform's default application, detached."""
    path = Path(path)
    if sys.platform.startswith("win"):
        os.startfile(str(path))  # type: ignore[attr-defined]
        return
    opener = "open" if sys.platform == "darwin" else "xdg-open"
    subprocess.Popen(
        [opener, str(path)],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
