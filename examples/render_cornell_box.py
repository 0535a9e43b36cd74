#!/usr/bin/env python3
"""Render the spectral Cornell box scene.

Usage:
    python -m examples.render_cornell_box [options]

Options:
    --width WIDTH       Image width in pixels (default: 256)
    --height HEIGHT     Image height in pixels (default: 256)
    --samples SAMPLES   Number of samples per pixel (default: 64)
    --time SECONDS      Stop after this many seconds, whatever the sample count
    --threads N         Worker processes (default: one per core)
    --seed SEED         Random seed for reproducible renders
    --exposure VALUE    Exposure before tonemapping (default: 1.0)
    --curve NAME        clamp, reinhard, exposure or filmic (default: filmic)
    --output OUTPUT     Output file path (default: cornell_box.png)
    --quiet             Suppress progress output

Example:
    python -m examples.render_cornell_box --width 128 --height 128 --samples 32
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti
from PIL import Image as PILImage


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the spectral Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=256, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=256, help="Image height in pixels")
    parser.add_argument("--samples", type=int, default=64, help="Samples per pixel")
    parser.add_argument("--time", type=float, default=None, help="Time budget in seconds")
    parser.add_argument("--threads", type=int, default=None, help="Worker processes")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--exposure", type=float, default=1.0, help="Exposure")
    parser.add_argument(
        "--curve",
        choices=("clamp", "reinhard", "exposure", "filmic"),
        default="filmic",
        help="Tonemapping curve",
    )
    parser.add_argument("--output", type=str, default="cornell_box.png", help="Output PNG")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_cornell_box(args: argparse.Namespace) -> Path:
    """Render the Cornell box and save it as a PNG.

    Returns:
        Path to the saved image file.
    """
    from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
    from prismtrace.preview.tonemap import Tonemapper, image_to_uint8
    from prismtrace.scene.cornell_box import create_cornell_box_scene

    scene, camera = create_cornell_box_scene(aspect_ratio=args.width / args.height)
    settings = RenderSettings(
        width=args.width,
        height=args.height,
        samples_per_pixel=args.samples,
        time_budget=args.time,
        threads=args.threads,
        seed=args.seed,
    )
    renderer = ProgressiveRenderer(
        scene,
        camera,
        settings,
        tonemapper=Tonemapper(exposure=args.exposure, curve=args.curve),
    )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if args.quiet:
            return
        elapsed = time.time() - start_time
        rate = current / elapsed if elapsed > 0 else 0.0
        print(f"\r  Progress: {current}/{target} spp - {rate:.2f} spp/s", end="", flush=True)

    image = renderer.render(callback=progress_callback)
    if not args.quiet:
        print()

    output_file = Path(args.output)
    PILImage.fromarray(image_to_uint8(image), mode="RGB").save(output_file)

    if not args.quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ti.init(arch=ti.cpu)

    try:
        render_cornell_box(args)
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
