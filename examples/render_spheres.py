#!/usr/bin/env python3
"""Render one of the preset sphere scenes to a PNG file.

Usage:
    python -m examples.render_spheres [options]

Options:
    --width WIDTH           Image width in pixels (default: 400)
    --height HEIGHT         Image height in pixels (default: 225)
    --samples SAMPLES       Number of samples per pixel (default: 100)
    --max-depth DEPTH       Bounce budget per sample (default: 50)
    --scene {three,random}  Preset scene (default: random)
    --env-map PATH          Image used as an equirectangular sky
    --output OUTPUT         Output file path (default: spheres.png)
    --seed SEED             Seed for scene generation and sampling
    --batch-size SIZE       Samples per progress update (default: 10)
    --cpu                   Force the CPU backend
    --quiet                 Suppress progress output

Example:
    python -m examples.render_spheres --scene three --width 320 --height 240 --samples 50
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset sphere scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=225, help="Image height in pixels (default: 225)")
    parser.add_argument(
        "--samples",
        type=int,
        default=100,
        help="Number of samples per pixel (default: 100)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=50,
        help="Bounce budget per sample (default: 50)",
    )
    parser.add_argument(
        "--scene",
        choices=("three", "random"),
        default="random",
        help="Preset scene to render (default: random)",
    )
    parser.add_argument(
        "--env-map",
        type=str,
        default=None,
        help="Image file used as an equirectangular environment map",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="spheres.png",
        help="Output file path (default: spheres.png)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for scene generation and sampling",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=10,
        help="Samples per progress update (default: 10)",
    )
    parser.add_argument("--cpu", action="store_true", help="Force the CPU backend")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def render_spheres(
    width: int = 400,
    height: int = 225,
    num_samples: int = 100,
    max_depth: int = 50,
    scene_name: str = "random",
    env_map_path: str | None = None,
    output_path: str = "spheres.png",
    seed: int | None = None,
    batch_size: int = 10,
    quiet: bool = False,
) -> Path:
    """Render a preset scene and save it as a PNG.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.lumen.camera.thin_lens import setup_camera
    from src.lumen.core.progressive import ProgressiveRenderer
    from src.lumen.core.sky import load_environment_map
    from src.lumen.preview.export import save_png
    from src.lumen.scene.presets import (
        create_random_spheres_scene,
        create_three_spheres_scene,
    )

    aspect_ratio = width / height
    if not quiet:
        print(f"Creating '{scene_name}' scene ({width}x{height})...")

    if scene_name == "three":
        scene, camera = create_three_spheres_scene(aspect_ratio=aspect_ratio)
    else:
        scene, camera = create_random_spheres_scene(seed=seed, aspect_ratio=aspect_ratio)

    if env_map_path is not None:
        scene.set_environment_map(load_environment_map(env_map_path))
        if not quiet:
            print(f"Using environment map: {env_map_path}")

    setup_camera(camera)

    renderer = ProgressiveRenderer(width, height, max_depth=max_depth)

    if not quiet:
        print(
            f"Rendering {scene.get_sphere_count()} spheres at {num_samples} samples "
            f"per pixel (max depth {max_depth})..."
        )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    renderer.render(num_samples=num_samples, batch_size=batch_size, callback=progress_callback)

    if not quiet:
        print()

    output_file = Path(output_path)
    save_png(renderer, output_file)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    init_kwargs = {}
    if args.seed is not None:
        init_kwargs["random_seed"] = args.seed

    # ti.gpu falls back to the CPU backend when no GPU is available
    ti.init(arch=ti.cpu if args.cpu else ti.gpu, **init_kwargs)

    try:
        render_spheres(
            width=args.width,
            height=args.height,
            num_samples=args.samples,
            max_depth=args.max_depth,
            scene_name=args.scene,
            env_map_path=args.env_map,
            output_path=args.output,
            seed=args.seed,
            batch_size=args.batch_size,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
