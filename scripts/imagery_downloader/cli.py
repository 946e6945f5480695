#!/usr/bin/env python3
"""
Command-line interface for the satellite imagery downloader.

Usage:
    # Download an area using preferences.json (created on first run)
    imagery-downloader download

    # Override the area and zoom, then open the result
    imagery-downloader download -t "52.70867, 5.68805" -b "52.55494, 5.87903" -z 13 --open

    # Use a different tile server
    imagery-downloader download -u "https://tile.openstreetmap.org/{z}/{x}/{y}.png" -c 3

    # Show output size and tile count without downloading
    imagery-downloader estimate -t "52.70867, 5.68805" -b "52.55494, 5.87903" -z 17
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import (
    DEFAULT_PREFS_PATH,
    ConfigError,
    DownloaderConfig,
    parse_coordinates,
)


def _point(text: Optional[str]):
    return parse_coordinates(text) if text is not None else None


def load_config(args: argparse.Namespace) -> DownloaderConfig:
    """Load preferences and apply command-line overrides."""
    prefs_path = Path(args.prefs)
    if not prefs_path.is_absolute():
        prefs_path = Path.cwd() / prefs_path

    config = DownloaderConfig.load(prefs_path)
    return config.with_overrides(
        url=args.url,
        tile_size=args.tile_size,
        out_dir=Path(args.out_dir) if args.out_dir else None,
        top_left=_point(args.top_left),
        bottom_right=_point(args.bottom_right),
        zoom=args.zoom,
        channels=args.channels,
        timeout=getattr(args, "timeout", None),
        workers=getattr(args, "workers", None),
    )


def cmd_download(args: argparse.Namespace) -> int:
    """Download the configured area and save it as PNG."""
    from .compositor import fill_ratio
    from .downloader import download_image
    from .grid import resolve_grid
    from .output import open_in_viewer, save_image

    try:
        config = load_config(args)
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    missing = config.missing_placeholders()
    if missing:
        print(f"⚠ URL template is missing {', '.join(missing)}; tiles will likely fail")

    grid = resolve_grid(config.top_left, config.bottom_right, config.zoom, config.tile_size)
    if grid.is_empty or grid.tile_count == 0:
        print(
            f"Error: bounding box is empty ({grid.width}x{grid.height}, {grid.tile_count} tiles); "
            "top-left must be north-west of bottom-right",
            file=sys.stderr,
        )
        return 1

    print("Downloading image...")
    print(f"  Area: {config.top_left} → {config.bottom_right}, zoom {config.zoom}")

    try:
        result = download_image(
            config.top_left,
            config.bottom_right,
            config.zoom,
            config.url,
            headers=config.headers,
            tile_size=config.tile_size,
            channels=config.channels,
            workers=config.workers,
            timeout=config.timeout,
            clip=args.clip,
            progress=not args.quiet,
            deadline=args.deadline,
        )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    if result.cancelled:
        print(f"✗ Deadline reached, {len(result.pending)} tiles not downloaded")
    else:
        print("✓ Downloaded successfully.")
    if result.failed:
        print(f"✗ {len(result.failed)} of {result.tiles_total} tiles failed and were left blank")
        if args.verbose:
            for index in result.failed:
                print(f"    {index}")
    print(f"  Filled: {fill_ratio(result.image):.0%}")

    print("Saving the image...")
    print(f"Image size: {result.width}x{result.height}")
    save_path = save_image(result.image, config.out_dir)
    print(f"Saved as {save_path}")

    if args.open:
        print("Opening image in default viewer...")
        try:
            open_in_viewer(save_path)
        except OSError as e:
            print(f"Error: Failed to open image in default viewer: {e}", file=sys.stderr)
            return 1

    return 0


def cmd_estimate(args: argparse.Namespace) -> int:
    """Print the raster size and tile count for the configured area."""
    from .grid import resolve_grid

    try:
        config = load_config(args)
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    grid = resolve_grid(config.top_left, config.bottom_right, config.zoom, config.tile_size)
    channels = 3 if config.channels == 3 else 4

    print(f"Zoom: {grid.zoom}")
    print(f"Tiles: x {grid.tl_tile_x}..{grid.br_tile_x}, y {grid.tl_tile_y}..{grid.br_tile_y}")
    print(f"Tile requests: {grid.tile_count}")
    print(f"Image size: {grid.width}x{grid.height}")
    print(f"Raw size: {grid.width * grid.height * channels / 1024 / 1024:.1f} MB")
    if grid.is_empty or grid.tile_count == 0:
        print("✗ Bounding box is empty; check the corner order")
        return 1
    return 0


def _add_area_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-p", "--prefs", default=str(DEFAULT_PREFS_PATH),
                        help="Preferences file path (default: ./preferences.json)")
    parser.add_argument("-u", "--url", help="URL template for the imagery")
    parser.add_argument("-s", "--tile-size", type=int, help="Tile size in pixels")
    parser.add_argument("-t", "--top-left",
                        help="Top left coordinates, e.g. \"52.70867, 5.68805\"")
    parser.add_argument("-b", "--bottom-right",
                        help="Bottom right coordinates, e.g. \"52.55494, 5.87903\"")
    parser.add_argument("-z", "--zoom", type=int, help="Zoom level (recommended 13-18)")
    parser.add_argument("-c", "--channels", type=int, choices=[3, 4],
                        help="3 for RGB, 4 for RGBA (default: 4)")
    parser.add_argument("-d", "--out-dir", help="Output directory")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Download satellite imagery by geographic coordinates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # download command
    download_parser = subparsers.add_parser("download", help="Download and stitch an area")
    _add_area_options(download_parser)
    download_parser.add_argument("-o", "--open", action="store_true",
                                 help="Open the result image in the default viewer")
    download_parser.add_argument("--workers", type=int, help="Parallel row workers (default: 8)")
    download_parser.add_argument("--timeout", type=float, help="Per-tile request timeout in seconds")
    download_parser.add_argument("--deadline", type=float,
                                 help="Stop after this many seconds and save what was fetched")
    download_parser.add_argument("--clip", action="store_true",
                                 help="Clip edge tiles instead of dropping them")
    download_parser.add_argument("-q", "--quiet", action="store_true", help="Hide progress bar")

    # estimate command
    estimate_parser = subparsers.add_parser("estimate", help="Show output size without downloading")
    _add_area_options(estimate_parser)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "download":
        return cmd_download(args)
    elif args.command == "estimate":
        return cmd_estimate(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
