"""Command-line interface for solarlayers."""

from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from pathlib import Path
from typing import Any

import jsonschema

from solarlayers import __version__
from solarlayers.config import QUALITY_LEVELS, SolarLayersConfig, load_config
from solarlayers.errors import SolarLayersError
from solarlayers.layers.registry import list_layer_types
from solarlayers.layers.types import LayerOptions
from solarlayers.logging_utils import LogOptions, configure_logging
from solarlayers.manager import LayerManager, LayerResult
from solarlayers.raster.decode import read_geotiff
from solarlayers.raster.models import Location
from solarlayers.render.palettes import PALETTES, css_gradient

LOGGER = logging.getLogger("solarlayers.cli")

_DATA_URL_PREFIX = "data:image/png;base64,"


def _add_location_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lat", type=float, required=True, help="Target latitude (WGS84).")
    parser.add_argument("--lon", type=float, required=True, help="Target longitude (WGS84).")


def _add_layer_option_arguments(parser: argparse.ArgumentParser) -> None:
    """Register arguments shared by commands that build LayerOptions."""
    parser.add_argument("--month", type=int, help="Month index 0-11.")
    parser.add_argument("--day", type=int, default=15, help="Day of month 1-31 for hourly shade.")
    parser.add_argument("--hour", type=int, help="Render a single hour 0-23 for hourly shade.")
    parser.add_argument("--margin", type=int, help="Pixel margin around the building crop.")
    parser.add_argument(
        "--no-crop",
        action="store_true",
        help="Keep the full raster instead of cropping to the building.",
    )
    parser.add_argument(
        "--no-alpha",
        action="store_true",
        help="Render no-data pixels opaque black instead of transparent.",
    )
    parser.add_argument("--max-width", type=int, help="Maximum output image width.")
    parser.add_argument("--max-height", type=int, help="Maximum output image height.")
    parser.add_argument(
        "--include-rasters",
        action="store_true",
        help="Include processed raster values in JSON output.",
    )
    parser.add_argument(
        "--no-seasonal-adjustment",
        action="store_true",
        help="Render monthly flux without seasonal intensity scaling.",
    )


def _add_process_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the online process subcommand."""
    process = subparsers.add_parser(
        "process",
        help="Fetch layers from the Solar API and process them for a location.",
    )
    _add_location_arguments(process)
    process.add_argument(
        "--layer",
        action="append",
        choices=list_layer_types(),
        help="Layer to process (repeatable). Defaults to every layer.",
    )
    process.add_argument("--api-key", help="Solar API key (defaults to $SOLAR_API_KEY).")
    process.add_argument("--quality", choices=QUALITY_LEVELS, help="Required imagery quality.")
    process.add_argument("--radius", type=float, help="Search radius in meters.")
    process.add_argument(
        "--synthetic-fallback",
        dest="synthetic_fallback",
        action="store_true",
        default=None,
        help="Return synthetic images when real data cannot be processed.",
    )
    process.add_argument(
        "--no-synthetic-fallback",
        dest="synthetic_fallback",
        action="store_false",
        help="Fail instead of returning synthetic images.",
    )
    process.add_argument("--cache-dir", help="Enable the result cache in this directory.")
    process.add_argument("--output", default="-", help="JSON output path or '-' for stdout.")
    process.add_argument("--png-dir", help="Directory to write rendered PNG files.")
    _add_layer_option_arguments(process)


def _add_render_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the offline render subcommand."""
    render = subparsers.add_parser(
        "render",
        help="Process local GeoTIFF files for a location.",
    )
    render.add_argument("--data", required=True, help="Layer GeoTIFF path.")
    render.add_argument("--mask", help="Building mask GeoTIFF path.")
    render.add_argument("--layer", required=True, choices=list_layer_types(), help="Layer type.")
    _add_location_arguments(render)
    render.add_argument("--output", required=True, help="Output PNG path.")
    render.add_argument("--json", dest="json_path", help="Optional JSON metadata output path.")
    _add_layer_option_arguments(render)


def _add_palettes_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the palettes subcommand."""
    palettes = subparsers.add_parser("palettes", help="List the built-in color palettes.")
    palettes.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format.",
    )


def _add_version_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the version subcommand."""
    subparsers.add_parser("version", help="Print the current version.")


def _layer_options(args: argparse.Namespace) -> LayerOptions:
    return LayerOptions(
        radius_meters=getattr(args, "radius", None),
        quality=getattr(args, "quality", None),
        month=args.month,
        day=args.day,
        hour=args.hour,
        margin_px=args.margin,
        crop_to_building=not args.no_crop,
        use_alpha=not args.no_alpha,
        max_width=args.max_width,
        max_height=args.max_height,
        fallback_to_synthetic=getattr(args, "synthetic_fallback", None),
        include_rasters=args.include_rasters,
        seasonal_adjustment=not args.no_seasonal_adjustment,
    )


def _png_bytes(data_url: str) -> bytes:
    if not data_url.startswith(_DATA_URL_PREFIX):
        raise ValueError("Visualization is not a PNG data URL")
    return base64.b64decode(data_url[len(_DATA_URL_PREFIX) :])


def _write_pngs(result: LayerResult, directory: Path) -> list[Path]:
    """Write the primary and per-band images of a result as PNG files."""
    directory.mkdir(parents=True, exist_ok=True)
    name = result.layer_type.value
    written = []
    primary = directory / f"{name}.png"
    primary.write_bytes(_png_bytes(result.visualization.data_url))
    written.append(primary)
    for image in result.visualization.images:
        path = directory / f"{name}_{int(image['index']):02d}.png"
        path.write_bytes(_png_bytes(image["data_url"]))
        written.append(path)
    return written


def _write_json(payload: Any, output: str) -> None:
    text = json.dumps(payload, indent=2)
    if output == "-":
        sys.stdout.write(text + "\n")
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")


def _run_process(args: argparse.Namespace, config: SolarLayersConfig) -> int:
    options = _layer_options(args)
    location = Location(latitude=args.lat, longitude=args.lon)
    layers = args.layer or list_layer_types()
    manager = LayerManager.from_config(config, api_key=args.api_key)
    if len(layers) == 1:
        result = manager.process_layer(layers[0], location, options)
        payload: dict[str, Any] = result.to_dict(include_rasters=options.include_rasters)
        results = [result]
    else:
        batch = manager.process_layers(layers, location, options)
        payload = batch.to_dict(include_rasters=options.include_rasters)
        results = list(batch.layers.values())
        for name, error in batch.errors.items():
            LOGGER.warning("Layer failed: %s", error, extra={"layer": name})
    if args.png_dir:
        for result in results:
            for path in _write_pngs(result, Path(args.png_dir)):
                LOGGER.info("Wrote %s", path, extra={"layer": result.layer_type.value})
    _write_json(payload, args.output)
    return 0


def _run_render(args: argparse.Namespace, config: SolarLayersConfig) -> int:
    options = _layer_options(args)
    data = read_geotiff(Path(args.data))
    mask = read_geotiff(Path(args.mask)) if args.mask else None
    manager = LayerManager(config)
    result = manager.process_local(
        args.layer,
        data,
        Location(latitude=args.lat, longitude=args.lon),
        mask=mask,
        options=options,
    )
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(_png_bytes(result.visualization.data_url))
    LOGGER.info("Wrote %s", output, extra={"layer": result.layer_type.value})
    if args.json_path:
        _write_json(result.to_dict(include_rasters=options.include_rasters), args.json_path)
    return 0


def _run_palettes(args: argparse.Namespace) -> int:
    if args.format == "json":
        payload = {
            name: {"colors": list(colors), "css": css_gradient(name)}
            for name, colors in PALETTES.items()
        }
        _write_json(payload, "-")
        return 0
    for name, colors in PALETTES.items():
        print(f"{name}: {len(colors)} colors ({colors[0]} -> {colors[-1]})")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI entrypoint and return an exit code."""
    parser = argparse.ArgumentParser(
        prog="solarlayers",
        description="Solar data-layer building isolation and rendering",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (repeatable).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce log output to warnings and errors.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON on stderr.",
    )
    parser.add_argument(
        "--log-file",
        help="Optional path for JSON log output.",
    )
    parser.add_argument(
        "--config",
        help="JSON configuration file (defaults to $SOLARLAYERS_CONFIG).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_process_parser(subparsers)
    _add_render_parser(subparsers)
    _add_palettes_parser(subparsers)
    _add_version_parser(subparsers)

    args = parser.parse_args(argv)
    log_file_value = getattr(args, "log_file", None)
    log_options = LogOptions(
        verbose=getattr(args, "verbose", 0) or 0,
        quiet=bool(getattr(args, "quiet", False)),
        log_file=Path(log_file_value) if log_file_value else None,
        json_console=bool(getattr(args, "log_json", False)),
    )
    configure_logging(log_options)

    if args.command == "version":
        print(__version__)
        return 0
    if args.command == "palettes":
        return _run_palettes(args)

    try:
        overrides: dict[str, dict[str, Any]] = {}
        if getattr(args, "cache_dir", None):
            overrides["cache"] = {"enabled": True, "directory": Path(args.cache_dir)}
        config = load_config(
            Path(args.config) if args.config else None,
            overrides=overrides,
        )
        if args.command == "process":
            return _run_process(args, config)
        if args.command == "render":
            return _run_render(args, config)
    except (SolarLayersError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1
    except jsonschema.ValidationError as exc:
        LOGGER.error("Invalid configuration: %s", exc.message)
        return 1
    parser.error(f"Unknown command: {args.command}")
    return 2
