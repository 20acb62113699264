#!/usr/bin/env python3
"""
prismtrace - A Whitted-style Python Ray Tracer

Main entry point for rendering scene files.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from PIL import Image

from prismtrace.mesh import MeshCache
from prismtrace.raytracer import RayTracer, RenderConfig, new_image
from prismtrace.scene_parser import SceneParseError, load_scene
from prismtrace.textures import TextureCache, FILTER_KINDS as TEXTURE_FILTERS
from prismtrace.filters import FILTER_KINDS as POST_FILTERS


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a console handler to the package logger."""
    logger = logging.getLogger('prismtrace')
    if not logger.handlers:
        ch = logging.StreamHandler()
        fmt = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        ch.setFormatter(fmt)
        logger.addHandler(ch)
    logger.setLevel(level)
    return logger


def build_config(args: argparse.Namespace) -> RenderConfig:
    """Map command-line flags onto a RenderConfig."""
    return RenderConfig(
        enable_acceleration=not args.no_acceleration,
        enable_parallelism=not args.no_parallel,
        enable_shadow=not args.no_shadows,
        enable_soft_shadow=args.soft_shadows,
        enable_reflection=not args.no_reflection,
        enable_refraction=args.refraction,
        enable_texture_map=not args.no_textures,
        enable_texture_filter=args.texture_filter is not None,
        texture_filter=args.texture_filter or 'bilinear',
        enable_super_sample=args.supersample,
        enable_depth_of_field=args.dof,
        max_depth=args.depth,
        only_render_normals=args.normals,
        num_threads=args.threads,
        soft_shadow_samples=args.shadow_samples,
        post_filter=args.post_filter,
        seed=args.seed,
        reflection_gate=args.reflection_gate
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='prismtrace - A Whitted-style Python Ray Tracer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py scenes/spheres.yaml --output render.png
  python main.py scenes/glass.yaml --refraction --depth 6 --output glass.png
  python main.py scenes/mesh.json --no-parallel --normals --output normals.png
        '''
    )

    parser.add_argument('scene', type=str, help='Scene file (YAML or JSON)')
    parser.add_argument('--output', type=str, default='output/render.png', help='Output filename')
    parser.add_argument('--depth', type=int, default=4, help='Max recursion depth (default: 4)')
    parser.add_argument('--threads', type=int, default=0, help='Number of threads (0=auto)')
    parser.add_argument('--seed', type=int, default=0, help='Seed for soft shadows and lens samples')
    parser.add_argument('--no-acceleration', action='store_true', help='Test every shape instead of using the BVH')
    parser.add_argument('--no-parallel', action='store_true', help='Render on a single thread')
    parser.add_argument('--no-shadows', action='store_true', help='Disable shadow rays')
    parser.add_argument('--soft-shadows', action='store_true', help='Sample point and spot lights over an area')
    parser.add_argument('--shadow-samples', type=int, default=16, help='Soft shadow samples per light (default: 16)')
    parser.add_argument('--no-reflection', action='store_true', help='Disable mirror reflection')
    parser.add_argument('--refraction', action='store_true', help='Enable refraction')
    parser.add_argument('--no-textures', action='store_true', help='Ignore texture maps')
    parser.add_argument('--texture-filter', choices=[k for k in TEXTURE_FILTERS if k != 'nearest'],
                        help='Smooth texture filter (default: nearest texel)')
    parser.add_argument('--supersample', action='store_true', help='Adaptive supersampling')
    parser.add_argument('--dof', action='store_true', help='Depth of field from the camera aperture')
    parser.add_argument('--normals', action='store_true', help='Render surface normals instead of shading')
    parser.add_argument('--post-filter', choices=POST_FILTERS, help='Post-render filter pass')
    parser.add_argument('--reflection-gate', choices=['reflective', 'legacy'], default='reflective',
                        help='Which materials spawn mirror rays (default: reflective)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    # Print header
    print("=" * 60)
    print("prismtrace Ray Tracer")
    print("=" * 60)

    mesh_cache = MeshCache()
    texture_cache = TextureCache()

    print(f"\nLoading scene: {args.scene}")
    try:
        scene = load_scene(args.scene, mesh_cache)
    except SceneParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"  Resolution: {scene.width}x{scene.height}")
    print(f"  Shapes: {len(scene.shapes)}")
    print(f"  Lights: {len(scene.lights)}")
    print(f"  Max Depth: {config.max_depth}")
    print(f"  Threads: {config.num_threads if config.enable_parallelism else 1}")

    scene.prepare(mesh_cache, texture_cache)

    tracer = RayTracer(config, mesh_cache, texture_cache)

    # Progress tracking
    last_progress = [0]

    def progress_callback(progress: float):
        pct = int(progress * 100)
        if pct > last_progress[0]:
            last_progress[0] = pct
            bar_len = 40
            filled = int(bar_len * progress)
            bar = '#' * filled + '-' * (bar_len - filled)
            print(f'\rRendering: [{bar}] {pct}%', end='', flush=True)

    tracer.set_progress_callback(progress_callback)

    # Render
    print("\nRendering...")
    start_time = time.time()

    image = new_image(scene.width, scene.height)
    tracer.render(image, scene)

    elapsed = time.time() - start_time
    print(f"\nRender completed in {elapsed:.2f} seconds")
    print(f"  Pixels per second: {(scene.width * scene.height) / max(elapsed, 1e-9):.0f}")

    # Ensure output directory exists
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Save image
    print(f"\nSaving to: {args.output}")
    Image.fromarray(image, 'RGBA').save(output_path)

    print("\nDone!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
