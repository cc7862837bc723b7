#!/usr/bin/env python3
"""
Script to compute PALM descriptors for a directory of images
"""

import argparse
import os
import pickle
import numpy as np
import cv2
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from palm.models.palm import PALM
from palm.models.components.illumination_filter import IlluminationFilter
from palm.utils.config import load_config, model_config
from palm.utils.visualization import PALMVisualizer
from palm.errors import PALMError

def parse_args():
    parser = argparse.ArgumentParser(description='Compute PALM descriptors for images')
    parser.add_argument('input_dir', help='Directory containing input images')
    parser.add_argument('--output_dir', default='./descriptors',
                       help='Directory to save descriptors and pattern images')
    parser.add_argument('--config', default='configs/palm/palmprint.py',
                       help='Configuration file')
    parser.add_argument('--filter_type', choices=['regular', 'approximated'], default=None,
                       help='Override the configured filter type')
    parser.add_argument('--illumination', action='store_true',
                       help='Apply the illumination filter to color images first')
    parser.add_argument('--image_extensions', nargs='+',
                       default=['.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff'],
                       help='Image file extensions to process')

    return parser.parse_args()

def load_image(image_path, illumination_filter=None):
    """Load an image as grayscale, or through the illumination filter"""
    if illumination_filter is not None:
        image = cv2.imread(str(image_path), cv2.IMREAD_COLOR)
        return None if image is None else illumination_filter.apply(image)
    return cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)

def extract_descriptor_from_image(palm, image_path, output_dir, config, illumination_filter=None):
    """Compute and save the descriptor of a single image"""
    print(f"Processing {image_path}...")

    image = load_image(image_path, illumination_filter)
    if image is None:
        print(f"Error: Could not load image {image_path}")
        return None

    resize = config['preprocessing'].get('resize')
    if resize:
        image = cv2.resize(image, tuple(resize), interpolation=cv2.INTER_AREA)

    result = palm.describe(image)

    stem = Path(image_path).stem
    np.save(output_dir / f"{stem}_descriptor.npy", result.descriptor)

    vis_config = config['visualization']
    if vis_config.get('save_pattern_images', True):
        size = image.shape[:2] if vis_config.get('pattern_image_at_input_size', True) else None
        pattern = PALMVisualizer.pattern_image_to_uint8(result.pattern_image, size)
        cv2.imwrite(str(output_dir / f"{stem}_pattern.png"), pattern,
                    [cv2.IMWRITE_PNG_COMPRESSION, 0])

    print(f"  Descriptor length {result.descriptor.size}, "
          f"pattern image {result.pattern_image.shape[1]}x{result.pattern_image.shape[0]}")

    return {
        'image_path': str(image_path),
        'image_shape': image.shape,
        'descriptor': result.descriptor,
    }

def main():
    args = parse_args()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    if args.filter_type:
        config['model']['filter_type'] = args.filter_type

    palm = PALM(model_config(config))

    illumination_filter = None
    if args.illumination or config['illumination'].get('enabled'):
        illumination_filter = IlluminationFilter(alpha=config['illumination'].get('alpha', 0.3))

    input_dir = Path(args.input_dir)
    image_files = set()
    for ext in args.image_extensions:
        image_files.update(input_dir.glob(f"*{ext}"))
        image_files.update(input_dir.glob(f"*{ext.upper()}"))

    if not image_files:
        print(f"No images found in {input_dir} with extensions {args.image_extensions}")
        return

    print(f"Found {len(image_files)} images to process")
    print(f"Descriptor size: {palm.descriptor_size()}")

    all_results = []
    for image_path in sorted(image_files):
        try:
            result = extract_descriptor_from_image(
                palm, image_path, output_dir, config, illumination_filter
            )
            if result:
                all_results.append(result)
        except PALMError as e:
            print(f"Error processing {image_path}: {e}")
            continue

    if not all_results:
        print("No descriptors computed")
        return

    descriptors = np.vstack([r['descriptor'] for r in all_results])
    np.save(output_dir / 'descriptors.npy', descriptors)

    summary = {
        'total_images': len(all_results),
        'descriptor_size': palm.descriptor_size(),
        'config': config,
        'image_paths': [r['image_path'] for r in all_results]
    }

    summary_file = output_dir / 'extraction_summary.pkl'
    with open(summary_file, 'wb') as f:
        pickle.dump(summary, f)

    print(f"\nDescriptor extraction completed!")
    print(f"Processed {summary['total_images']} images")
    print(f"Results saved to {output_dir}")

if __name__ == "__main__":
    main()
