import logging
from typing import Tuple

import numpy as np
import cv2

from ...errors import InvalidConfigurationError, InvalidInputError

logger = logging.getLogger(__name__)

REGION_SIGMA = 8.0


def gaussian_weight_kernel(size: Tuple[int, int], sigma: float = REGION_SIGMA) -> np.ndarray:
    """
    2D Gaussian weighting kernel of an exact region size

    The kernel is generated square with an odd edge length derived from the
    region height, then resized to the region size if they differ.

    Args:
        size: Region size as (height, width)
        sigma: Gaussian standard deviation

    Returns:
        Kernel [height, width], float64
    """
    if sigma <= 0:
        raise InvalidConfigurationError(f"Sigma must be positive, got {sigma}")

    height, width = size
    kernel_size = height if height % 2 != 0 else height + 1

    kernel = cv2.getGaussianKernel(kernel_size, sigma)
    kernel = kernel @ kernel.T

    if kernel.shape != (height, width):
        kernel = cv2.resize(kernel, (width, height))

    return kernel


class HistogramBuilder:
    """
    Spatial histogram of pattern codes

    The pattern image is partitioned into a grid of regions; every region
    contributes one Gaussian-weighted, L2-normalized histogram of its codes.
    With inside partitioning a second grid, shifted by half a region in both
    axes, is appended after the primary grid.
    """

    def __init__(self, grid_size: int = 5, bin_count: int = 16,
                 apply_inside_partitioning: bool = True):
        """
        Initialize histogram builder

        Args:
            grid_size: Number of regions along each axis (> 0)
            bin_count: Number of histogram bins per region (> 1)
            apply_inside_partitioning: Append the shifted (grid_size - 1)^2 grid
        """
        if grid_size <= 0:
            raise InvalidConfigurationError(f"Grid size must be positive, got {grid_size}")
        if bin_count <= 1:
            raise InvalidConfigurationError(f"Bin count must be greater than 1, got {bin_count}")

        self.grid_size = grid_size
        self.bin_count = bin_count
        self.apply_inside_partitioning = apply_inside_partitioning

    def histogram_length(self) -> int:
        """Length of the vector returned by build"""
        length = self.grid_size * self.grid_size * self.bin_count
        if self.apply_inside_partitioning:
            length += (self.grid_size - 1) * (self.grid_size - 1) * self.bin_count
        return length

    def region_histogram(self, region: np.ndarray, kernel: np.ndarray) -> np.ndarray:
        """Gaussian-weighted, L2-normalized code histogram of one region"""
        histogram = np.bincount(region.ravel(), weights=kernel.ravel(),
                                minlength=self.bin_count)
        return histogram / (np.linalg.norm(histogram) + np.finfo(np.float64).eps)

    def build(self, pattern_image: np.ndarray) -> np.ndarray:
        """
        Build the spatial histogram of a pattern image

        Rows and columns left over when the image size is not a multiple of
        the grid size are not covered by any region.

        Args:
            pattern_image: Pattern codes [H, W], integer valued in [0, bin_count)

        Returns:
            Concatenated region histograms, length histogram_length()
        """
        if pattern_image is None or pattern_image.size == 0 or pattern_image.ndim != 2:
            raise InvalidInputError("Pattern image must be a non-empty 2D array")
        if not np.issubdtype(pattern_image.dtype, np.integer):
            raise InvalidInputError(
                f"Pattern image must hold integer codes, got dtype {pattern_image.dtype}"
            )

        rows, cols = pattern_image.shape
        if rows < self.grid_size or cols < self.grid_size:
            raise InvalidInputError(
                f"Pattern image of shape {pattern_image.shape} is smaller than "
                f"the {self.grid_size}x{self.grid_size} grid"
            )
        if pattern_image.min() < 0 or pattern_image.max() >= self.bin_count:
            raise InvalidInputError(
                f"Pattern codes must lie in [0, {self.bin_count}), "
                f"got [{pattern_image.min()}, {pattern_image.max()}]"
            )

        region_h = rows // self.grid_size
        region_w = cols // self.grid_size
        kernel = gaussian_weight_kernel((region_h, region_w))

        histogram = np.zeros(self.histogram_length(), dtype=np.float64)
        num_regions = self.grid_size * self.grid_size

        for row in range(self.grid_size):
            for col in range(self.grid_size):
                region = pattern_image[row * region_h:(row + 1) * region_h,
                                       col * region_w:(col + 1) * region_w]
                start = self.bin_count * (row * self.grid_size + col)
                histogram[start:start + self.bin_count] = self.region_histogram(region, kernel)

        if self.apply_inside_partitioning:
            inside = self.grid_size - 1
            offset_h = region_h // 2
            offset_w = region_w // 2

            for row in range(inside):
                for col in range(inside):
                    top = row * region_h + offset_h
                    left = col * region_w + offset_w
                    region = pattern_image[top:top + region_h, left:left + region_w]
                    start = self.bin_count * (num_regions + row * inside + col)
                    histogram[start:start + self.bin_count] = self.region_histogram(region, kernel)

        return histogram
