"""
Performance demonstration for the compositor's stage cache.

Compares a full render against the partial re-renders an editor triggers
while the user drags a slider or the crop frame. Run this script to see
the difference on your system.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import time
from dataclasses import replace

from PIL import Image

from CS_Libs.ImageEditingLib.image_models import (
    ChromaSettings,
    CropRect,
    ImageAdjustments,
    TransformSettings,
)
from CS_Libs.PipelineLib.render_pipeline import CompositorPipeline


def make_scene(size):
    """Green screen with a rectangular subject, plus a gradient backdrop."""
    width, height = size
    foreground = Image.new("RGBA", size, (0, 177, 64, 255))
    foreground.paste((210, 150, 120, 255), (width // 4, height // 6, 3 * width // 4, height))
    background = Image.linear_gradient("L").resize(size).convert("RGBA")
    return foreground, background


def timed(label, func, iterations=3):
    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        func()
        times.append(time.perf_counter() - start)
    average = sum(times) / len(times)
    print(f"  {label:<32} {average * 1000:8.1f} ms")
    return average


def benchmark(size):
    print(f"\nBenchmarking {size[0]}x{size[1]} composite")
    print("-" * 60)

    foreground, background = make_scene(size)
    chroma = ChromaSettings()
    adjustments = ImageAdjustments(contrast=10, warmth=15)
    transform = TransformSettings(rotate=3, vertical=10)

    def full():
        CompositorPipeline().render(foreground, background, chroma, adjustments, transform)

    pipeline = CompositorPipeline()
    pipeline.render(foreground, background, chroma, adjustments, transform)
    step = {"i": 0}

    def slider():
        step["i"] += 1
        pipeline.render(foreground, background, chroma, adjustments, replace(transform, rotate=3 + step["i"]))

    def crop_drag():
        step["i"] += 1
        offset = (step["i"] % 10) / 20
        pipeline.resolve_crop(CropRect(offset, offset, 0.5, 0.5))

    avg_full = timed("full render", full)
    avg_slider = timed("rotate slider (transform onward)", slider)
    avg_crop = timed("crop drag (crop only)", crop_drag)

    print(f"\n  Slider speedup:    {avg_full / avg_slider:.1f}x")
    print(f"  Crop drag speedup: {avg_full / avg_crop:.1f}x")


def main():
    print("=" * 60)
    print("Compositor Stage Cache Demonstration")
    print("=" * 60)

    for size in [(640, 480), (1280, 720), (1920, 1080)]:
        try:
            benchmark(size)
        except KeyboardInterrupt:
            print("\n\nBenchmark interrupted by user")
            break


if __name__ == "__main__":
    main()
