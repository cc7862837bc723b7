import matplotlib.pyplot as plt
import numpy as np
import cv2
from typing import List, Optional, Tuple


class PALMVisualizer:
    """Visualization utilities for PALM pattern images, filters and descriptors"""

    @staticmethod
    def pattern_image_to_uint8(pattern_image: np.ndarray,
                               size: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """
        Rescale a pattern image to 0..255 for display or saving

        Args:
            pattern_image: Pattern codes [h, w]
            size: Optional output size as (height, width), e.g. the source
                  image size; area interpolation is used for the resize

        Returns:
            uint8 image
        """
        normalized = cv2.normalize(pattern_image.astype(np.float64), None, 0, 255,
                                   cv2.NORM_MINMAX, dtype=cv2.CV_8U)
        if size is not None and normalized.shape[:2] != tuple(size):
            height, width = size
            normalized = cv2.resize(normalized, (width, height), interpolation=cv2.INTER_AREA)
        return normalized

    @staticmethod
    def plot_pattern_image(image: np.ndarray, pattern_image: np.ndarray,
                           title: str = "PALM Pattern Image", figsize: tuple = (12, 6),
                           save_path: Optional[str] = None):
        """
        Plot an input image next to its pattern image

        Args:
            image: Input image
            pattern_image: Pattern codes computed from the image
            title: Plot title
            figsize: Figure size
            save_path: Path to save the figure (optional)
        """
        fig, (ax1, ax2) = plt.subplots(1, 2, figsize=figsize)

        if len(image.shape) == 3:
            ax1.imshow(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
        else:
            ax1.imshow(image, cmap='gray')
        ax1.set_title(f'Input {image.shape[1]}x{image.shape[0]}', fontsize=12, fontweight='bold')
        ax1.axis('off')

        im = ax2.imshow(pattern_image, cmap='nipy_spectral', interpolation='nearest')
        ax2.set_title(f'Pattern codes {pattern_image.shape[1]}x{pattern_image.shape[0]}',
                      fontsize=12, fontweight='bold')
        ax2.axis('off')
        fig.colorbar(im, ax=ax2, fraction=0.046, pad=0.04)

        plt.suptitle(title, fontsize=16, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"  Pattern image plot saved to: {save_path}")
        else:
            plt.show()

    @staticmethod
    def plot_filters(filters: List[np.ndarray], title: str = "PALM Filter Bank",
                     save_path: Optional[str] = None):
        """
        Plot the filter bank, one panel per filter (real/imaginary pairs)

        Args:
            filters: Filter kernels as returned by PALM.filters()
            title: Plot title
            save_path: Path to save the figure (optional)
        """
        cols = 2
        rows = max(1, (len(filters) + 1) // cols)
        fig, axes = plt.subplots(rows, cols, figsize=(4 * cols, 3.5 * rows), squeeze=False)

        for k, ax in enumerate(axes.flat):
            if k < len(filters):
                ax.imshow(filters[k], cmap='RdBu_r', vmin=-1, vmax=1)
                part = 'real' if k % 2 == 0 else 'imag'
                ax.set_title(f'Bit {k} ({part})', fontsize=10, fontweight='bold')
            ax.axis('off')

        plt.suptitle(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"  Filter plot saved to: {save_path}")
        else:
            plt.show()

    @staticmethod
    def plot_descriptors(descriptors: List[np.ndarray], labels: Optional[List[str]] = None,
                         bin_count: Optional[int] = None, title: str = "PALM Descriptors",
                         figsize: tuple = (16, 5), save_path: Optional[str] = None):
        """
        Plot one or more descriptors as overlaid line profiles

        Args:
            descriptors: Descriptor vectors of equal length
            labels: Legend labels, one per descriptor
            bin_count: Bins per region; region boundaries are drawn if given
            title: Plot title
            figsize: Figure size
            save_path: Path to save the figure (optional)
        """
        plt.figure(figsize=figsize)

        for i, descriptor in enumerate(descriptors):
            label = labels[i] if labels else f'Descriptor {i}'
            plt.plot(np.ravel(descriptor), linewidth=0.8, alpha=0.8, label=label)

        if bin_count:
            length = len(np.ravel(descriptors[0]))
            for boundary in range(bin_count, length, bin_count):
                plt.axvline(boundary, color='gray', linewidth=0.3, alpha=0.5)

        plt.title(title, fontsize=14, fontweight='bold')
        plt.xlabel('Descriptor index')
        plt.ylabel('Normalized weight')
        plt.legend(loc='upper right')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"  Descriptor plot saved to: {save_path}")
        else:
            plt.show()

    @staticmethod
    def plot_distance_matrix(distances: np.ndarray, labels: Optional[List[str]] = None,
                             title: str = "PALM L1 Distances", save_path: Optional[str] = None):
        """
        Plot a pairwise descriptor distance matrix

        Args:
            distances: Distance matrix [N, M]
            labels: Optional tick labels (used for both axes when square)
            title: Plot title
            save_path: Path to save the figure (optional)
        """
        plt.figure(figsize=(8, 7))
        plt.imshow(distances, cmap='viridis')
        plt.colorbar(label='L1 distance')

        if labels and distances.shape[0] == distances.shape[1] == len(labels):
            plt.xticks(range(len(labels)), labels, rotation=45, ha='right')
            plt.yticks(range(len(labels)), labels)

        for i in range(distances.shape[0]):
            for j in range(distances.shape[1]):
                plt.text(j, i, f'{distances[i, j]:.1f}', ha='center', va='center',
                         color='white', fontsize=8)

        plt.title(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight')
            print(f"  Distance matrix saved to: {save_path}")
        else:
            plt.show()
