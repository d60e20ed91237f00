#!/usr/bin/env python3
"""
Command line entry point for the character mesh generator.

Reads a character image and its analysis, generates a GLB mesh and writes it
(plus enhanced textures, when requested) to disk.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog
import yaml
from PIL import Image, UnidentifiedImageError

from charmesh.core.app import CharacterMeshApp
from charmesh.generators.base import GenerationError, GenerationResult, configure_generator_logging
from charmesh.generators.models import ProgressUpdate
from charmesh.models.character_model import PixelBuffer
from charmesh.utils.config import EngineConfig, load_config

logger = structlog.get_logger(__name__)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="charmesh", description="Generate a GLB mesh from a 2D character image.")
    parser.add_argument("image", type=Path, help="Character image (any format Pillow can read)")
    parser.add_argument("--analysis", type=Path, help="Character analysis as JSON or YAML")
    parser.add_argument("--plan", help="Subscription plan (free, reply-guy, spartan, zeus, goat)")
    parser.add_argument("--output", "-o", type=Path, help="Output GLB path (default: <image>.glb)")
    parser.add_argument("--max-resolution", type=int, help="Grid resolution ceiling (2-255)")
    parser.add_argument("--time-budget", type=float, help="Abort after this many seconds")
    parser.add_argument("--no-textures", action="store_true", help="Skip texture enhancement")
    parser.add_argument("--textures-dir", type=Path, help="Directory for enhanced texture PNGs")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    return parser


def load_pixels(path: Path) -> PixelBuffer:
    with Image.open(path) as image:
        image.load()
        return PixelBuffer.from_image(image)


def load_analysis(path: Path | None) -> dict[str, Any] | None:
    if path is None:
        return None
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


def write_outputs(result: GenerationResult, output: Path, textures_dir: Path | None) -> list[Path]:
    written = []
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.glb)
    written.append(output)

    if result.textures is not None:
        target_dir = textures_dir or output.parent
        target_dir.mkdir(parents=True, exist_ok=True)
        suffix = "png" if result.textures.encoding == "png" else "raw"
        diffuse_path = target_dir / f"{output.stem}_diffuse.{suffix}"
        diffuse_path.write_bytes(result.textures.diffuse)
        written.append(diffuse_path)
        if result.textures.normal is not None:
            normal_path = target_dir / f"{output.stem}_normal.png"
            normal_path.write_bytes(result.textures.normal)
            written.append(normal_path)

    return written


def _log_progress(update: ProgressUpdate) -> None:
    logger.debug("Progress", step=update.step.value, progress=round(update.progress, 2), message=update.message)


async def run_generation(args: argparse.Namespace, config: EngineConfig) -> GenerationResult:
    """Run one generation through the application object."""
    app = CharacterMeshApp(config)
    await app.initialize()
    try:
        request = app.build_request(
            load_pixels(args.image),
            load_analysis(args.analysis),
            args.plan,
            max_resolution=args.max_resolution,
            time_budget_seconds=args.time_budget,
            include_textures=False if args.no_textures else None,
        )
        return await app.generate(request, _log_progress)
    finally:
        await app.shutdown()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the command line."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        configure_generator_logging(
            level=config.logging.level,
            format_json=config.logging.json_format,
            include_timestamp=config.logging.include_timestamp,
        )

        result = asyncio.run(run_generation(args, config))
        if not result.is_successful:
            error = result.error.to_dict() if result.error else {}
            print(f"Generation failed: {error.get('message', result.status.value)}", file=sys.stderr)
            sys.exit(EXIT_FAILURE)

        output = args.output or Path(config.output_dir) / f"{args.image.stem}.glb"
        written = write_outputs(result, output, args.textures_dir)

        for warning in result.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        stats = result.stats
        print(
            f"{output}: {stats['vertex_count']} vertices, {stats['triangle_count']} triangles, "
            f"{stats['glb_bytes']} bytes{' (fallback)' if result.used_fallback else ''}"
        )
        logger.info("Outputs written", paths=[str(path) for path in written])

    except KeyboardInterrupt:
        logger.info("Generation interrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except (GenerationError, OSError, UnidentifiedImageError, ValueError, yaml.YAMLError) as e:
        message = e.message if isinstance(e, GenerationError) else str(e)
        logger.error("Generation failed", error=message)
        print(f"Generation failed: {message}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
