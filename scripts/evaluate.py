#!/usr/bin/env python3
"""
Script to evaluate PALM descriptor distances on image pairs
"""

import argparse
import os
import pickle
import numpy as np
from pathlib import Path
import sys
import time

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from palm.models.palm import PALM
from palm.models.components.illumination_filter import IlluminationFilter
from palm.utils.config import load_config, model_config
from palm.datasets.image_pairs import ImagePairDataset, ImagePairTransforms
from palm.errors import PALMError

def parse_args():
    parser = argparse.ArgumentParser(description='Evaluate PALM descriptor distances')
    parser.add_argument('dataset_dir', help='Directory containing the images')
    parser.add_argument('--pairs_file',
                       help='File listing "image1 image2 [label]" pairs (label 1 = same identity)')
    parser.add_argument('--output_dir', default='./evaluation_results',
                       help='Directory to save evaluation results')
    parser.add_argument('--config', default='configs/palm/palmprint.py',
                       help='Configuration file')
    parser.add_argument('--num_pairs', type=int, default=None,
                       help='Number of pairs to evaluate (for testing)')

    return parser.parse_args()

def evaluate_image_pair(palm, image1, image2, pair_id, label=None):
    """Compute the descriptor distance of a single image pair"""
    start_time = time.time()

    desc1 = palm.describe(image1).descriptor
    desc2 = palm.describe(image2).descriptor
    distance = palm.distance(desc1, desc2)

    return {
        'pair_id': pair_id,
        'label': label,
        'distance': distance,
        'computation_time': time.time() - start_time,
    }

def best_threshold(genuine, impostor):
    """Distance threshold maximizing pair classification accuracy"""
    distances = np.concatenate([genuine, impostor])
    labels = np.concatenate([np.ones(len(genuine)), np.zeros(len(impostor))])

    best = (0.0, 0.0)
    for threshold in np.unique(distances):
        accuracy = np.mean((distances <= threshold) == labels)
        if accuracy > best[1]:
            best = (float(threshold), float(accuracy))
    return best

def compute_summary_statistics(all_metrics):
    """Compute summary statistics across all evaluated pairs"""
    if not all_metrics:
        return {}

    distances = np.array([m['distance'] for m in all_metrics])
    times = np.array([m['computation_time'] for m in all_metrics])

    summary = {
        'num_pairs_evaluated': len(all_metrics),
        'average_distance': np.mean(distances),
        'std_distance': np.std(distances),
        'average_computation_time': np.mean(times),
        'detailed_metrics': all_metrics
    }

    genuine = np.array([m['distance'] for m in all_metrics if m['label'] == 1])
    impostor = np.array([m['distance'] for m in all_metrics if m['label'] == 0])
    if len(genuine) > 0 and len(impostor) > 0:
        threshold, accuracy = best_threshold(genuine, impostor)
        summary.update({
            'average_genuine_distance': np.mean(genuine),
            'average_impostor_distance': np.mean(impostor),
            'best_threshold': threshold,
            'best_accuracy': accuracy,
        })

    return summary

def main():
    args = parse_args()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    config = load_config(args.config)
    palm = PALM(model_config(config))

    transforms = []
    if config['illumination'].get('enabled'):
        transforms.append(ImagePairTransforms.illumination(
            IlluminationFilter(alpha=config['illumination'].get('alpha', 0.3))))
    if config['preprocessing'].get('resize'):
        transforms.append(ImagePairTransforms.resize(tuple(config['preprocessing']['resize'])))

    dataset = ImagePairDataset(
        args.dataset_dir, args.pairs_file,
        color=config['illumination'].get('enabled', False),
        transform=ImagePairTransforms.compose(*transforms) if transforms else None
    )

    if args.num_pairs:
        dataset.image_pairs = dataset.image_pairs[:args.num_pairs]

    print(f"Evaluating {len(dataset)} image pairs...")

    all_metrics = []
    for i in range(len(dataset)):
        try:
            sample = dataset[i]
            print(f"Evaluating pair {i+1}/{len(dataset)}: {sample['image1_path']} - {sample['image2_path']}")

            metrics = evaluate_image_pair(
                palm, sample['image1'], sample['image2'], i, sample['label']
            )
            all_metrics.append(metrics)

            print(f"  L1 distance: {metrics['distance']:.4f} "
                  f"(time: {metrics['computation_time']:.3f}s)")

        except (PALMError, ValueError) as e:
            print(f"  Error: {e}")
            continue

    summary = compute_summary_statistics(all_metrics)

    results_file = output_dir / 'evaluation_results.pkl'
    with open(results_file, 'wb') as f:
        pickle.dump({
            'summary': summary,
            'config': config,
            'args': vars(args)
        }, f)

    if not summary:
        print("\nNo pairs evaluated")
        return

    print(f"\nEvaluation Summary:")
    print(f"=" * 50)
    print(f"Pairs evaluated: {summary['num_pairs_evaluated']}")
    print(f"Average L1 distance: {summary['average_distance']:.4f} ± {summary['std_distance']:.4f}")
    print(f"Average computation time: {summary['average_computation_time']:.3f} seconds")
    if 'best_accuracy' in summary:
        print(f"Average genuine distance: {summary['average_genuine_distance']:.4f}")
        print(f"Average impostor distance: {summary['average_impostor_distance']:.4f}")
        print(f"Best threshold: {summary['best_threshold']:.4f} "
              f"(accuracy {summary['best_accuracy']:.2f})")
    print(f"\nResults saved to: {output_dir}")

if __name__ == "__main__":
    main()
