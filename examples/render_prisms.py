#!/usr/bin/env python3
"""Render the prism dispersion scene.

A small, hot light shines through an SF10 flint prism and a BK7 crown prism
onto a white screen. Because the glass index depends on wavelength, the
screen shows the light split into a spectrum.

Usage:
    python -m examples.render_prisms [options]

Options:
    --width WIDTH        Image width in pixels (default: 320)
    --height HEIGHT      Image height in pixels (default: 180)
    --samples SAMPLES    Number of samples per pixel (default: 128)
    --aperture VALUE     Lens diameter for depth of field (default: 0.0)
    --aberration VALUE   Lens chromatic aberration coefficient (default: 0.0)
    --threads N          Worker processes (default: one per core)
    --seed SEED          Random seed
    --output OUTPUT      Output file path (default: prisms.png)

Example:
    python -m examples.render_prisms --samples 256 --aberration 0.02
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import taichi as ti
from PIL import Image as PILImage

logger = logging.getLogger("render_prisms")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Render the prism dispersion scene.")
    parser.add_argument("--width", type=int, default=320)
    parser.add_argument("--height", type=int, default=180)
    parser.add_argument("--samples", type=int, default=128)
    parser.add_argument("--aperture", type=float, default=0.0)
    parser.add_argument("--aberration", type=float, default=0.0)
    parser.add_argument("--threads", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", type=str, default="prisms.png")
    return parser.parse_args()


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ti.init(arch=ti.cpu)

    from prismtrace.core.progressive import ProgressiveRenderer, RenderSettings
    from prismtrace.errors import PrismtraceError
    from prismtrace.preview.tonemap import Tonemapper, image_to_uint8
    from prismtrace.scene.cornell_box import create_prism_scene

    try:
        scene, camera = create_prism_scene(
            aspect_ratio=args.width / args.height,
            aperture=args.aperture,
            chromatic_aberration=args.aberration,
        )
        settings = RenderSettings(
            width=args.width,
            height=args.height,
            samples_per_pixel=args.samples,
            threads=args.threads,
            seed=args.seed,
        )
        renderer = ProgressiveRenderer(
            scene, camera, settings, tonemapper=Tonemapper(curve="reinhard")
        )
        image = renderer.render(
            callback=lambda current, target: logger.info("%d/%d spp", current, target),
            interval=2.0,
        )
    except PrismtraceError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130

    output_file = Path(args.output)
    PILImage.fromarray(image_to_uint8(image), mode="RGB").save(output_file)
    logger.info("Saved to %s", output_file.absolute())
    return 0


if __name__ == "__main__":
    sys.exit(main())
