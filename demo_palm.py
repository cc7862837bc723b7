#!/usr/bin/env python3
"""
Complete PALM demonstration script

Creates synthetic texture images, computes PALM descriptors with both filter
types, compares them with the L1 distance and visualizes the results.

Usage:
    python demo_palm.py [--save_dir DIR]

Features demonstrated:
- Zernike filter bank construction (regular and approximated)
- Pattern image extraction
- Gaussian-weighted grid histograms with inside partitioning
- Batch descriptor computation and pairwise L1 distances
"""

import sys
import os
import argparse
import numpy as np
import cv2
import time

# Add src to path for development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

try:
    from palm.models.palm import PALM, PALMConfig
    from palm.models.components.pattern_extractor import FilterType
    from palm.utils.visualization import PALMVisualizer
except ImportError as e:
    print(f"Error importing PALM modules: {e}")
    print("Please ensure PALM is properly installed.")
    print("Run: pip install -e . from the project root directory")
    sys.exit(1)


def create_sample_texture_images(size=(256, 256), seed=42):
    """
    Create synthetic texture images for demonstration

    Returns:
        dict: name -> uint8 grayscale image. "lines_a" and "lines_b" share the
        same oriented line texture with different noise and brightness,
        "blobs" is a different texture.
    """
    rng = np.random.RandomState(seed)
    y, x = np.mgrid[0:size[0], 0:size[1]].astype(np.float64)

    # Oriented line texture, like principal lines and wrinkles
    lines = (np.sin(0.15 * (x * np.cos(0.6) + y * np.sin(0.6))) +
             0.5 * np.sin(0.05 * (x * np.cos(2.0) + y * np.sin(2.0))))

    lines_a = lines + rng.normal(0, 0.2, size)
    lines_b = 0.9 * lines + rng.normal(0, 0.25, size) + 0.3

    blobs = np.zeros(size)
    for _ in range(40):
        cx, cy = rng.randint(0, size[1]), rng.randint(0, size[0])
        radius = rng.randint(5, 20)
        cv2.circle(blobs, (int(cx), int(cy)), int(radius), float(rng.uniform(0.5, 1.5)), -1)
    blobs = cv2.GaussianBlur(blobs, (0, 0), 3) + rng.normal(0, 0.2, size)

    def to_uint8(image):
        image = (image - image.min()) / (image.max() - image.min())
        return (image * 255).astype(np.uint8)

    return {
        'lines_a': to_uint8(lines_a),
        'lines_b': to_uint8(lines_b),
        'blobs': to_uint8(blobs),
    }


def demo_palm_complete(save_dir=None):
    """Complete demonstration of the PALM pipeline"""
    print("PALM Complete Pipeline Demonstration")
    print("=" * 50)

    print("Creating sample texture images...")
    images = create_sample_texture_images()
    names = list(images.keys())

    visualizer = PALMVisualizer()

    for filter_type in (FilterType.APPROXIMATED, FilterType.REGULAR):
        print(f"\n--- {filter_type.value.capitalize()} filters ---")

        config = PALMConfig(patch_size=32, grid_size=5, step_size=8, moment_order=2,
                            filter_type=filter_type, apply_inside_partitioning=True)
        palm = PALM(config)

        print(f"Filter bank size: {len(palm.filters())}")
        print(f"Descriptor size: {palm.descriptor_size()}")

        start = time.time()
        descriptors = palm.compute_batch([images[name] for name in names], row_stack=True)
        print(f"Computed {len(names)} descriptors in {time.time() - start:.3f}s")

        distances = palm.pairwise_distances(descriptors, descriptors)
        for i in range(len(names)):
            for j in range(i + 1, len(names)):
                print(f"  d({names[i]}, {names[j]}) = {distances[i, j]:.3f}")

        if save_dir:
            prefix = os.path.join(save_dir, filter_type.value)
            pattern_image = palm.describe(images['lines_a']).pattern_image
            visualizer.plot_pattern_image(images['lines_a'], pattern_image,
                                          title=f"Pattern image ({filter_type.value})",
                                          save_path=f"{prefix}_pattern.png")
            visualizer.plot_filters(palm.filters(), title=f"Filter bank ({filter_type.value})",
                                    save_path=f"{prefix}_filters.png")
            visualizer.plot_descriptors(list(descriptors), labels=names,
                                        bin_count=2 ** len(palm.filters()),
                                        title=f"Descriptors ({filter_type.value})",
                                        save_path=f"{prefix}_descriptors.png")
            visualizer.plot_distance_matrix(distances, labels=names,
                                            title=f"L1 distances ({filter_type.value})",
                                            save_path=f"{prefix}_distances.png")

    print("\nDemonstration completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='PALM demonstration')
    parser.add_argument('--save_dir', default=None,
                        help='Directory to save visualizations (nothing is plotted if omitted)')
    args = parser.parse_args()

    if args.save_dir:
        import matplotlib
        matplotlib.use('Agg')
        os.makedirs(args.save_dir, exist_ok=True)

    demo_palm_complete(args.save_dir)
