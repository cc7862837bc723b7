import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Sequence, Union

import numpy as np
import cv2
from skimage.util import view_as_windows

from .zernike_basis import ZernikeBasisGenerator, ApproximatedZernikeBasisGenerator
from ...errors import (
    InvalidConfigurationError,
    InvalidInputError,
    UnsupportedCombinationError,
)

logger = logging.getLogger(__name__)

MAX_MOMENT_ORDER = 3
FILTER_CORE_SIZE = 4

# Projections within this fraction of their magnitude bound count as zero
ROUNDING_TOLERANCE = 1e-9
# Window values copied per projection block (32 MB of float64)
PROJECTION_CHUNK_SIZE = 1 << 22

# Min-max normalized 4x4 Zernike filter bank, rounded to six digits.
# Magnitudes that appear in the (n, m) = (1, 1), (2, 2), (3, 1), (3, 3) bases.
C_333 = 0.333333
C_111 = 0.111111
C_569 = 0.568627
C_294 = 0.294118
C_481 = 0.481481
C_037 = 0.037037

APPROXIMATED_CORE_FILTERS = np.array([
    # n=1, m=1 (real)
    [[-1, -C_333, C_333, 1],
     [-1, -C_333, C_333, 1],
     [-1, -C_333, C_333, 1],
     [-1, -C_333, C_333, 1]],
    # n=1, m=1 (imag)
    [[1, 1, 1, 1],
     [C_333, C_333, C_333, C_333],
     [-C_333, -C_333, -C_333, -C_333],
     [-1, -1, -1, -1]],
    # n=2, m=2 (real)
    [[0, -1, -1, 0],
     [1, 0, 0, 1],
     [1, 0, 0, 1],
     [0, -1, -1, 0]],
    # n=2, m=2 (imag)
    [[-1, -C_333, C_333, 1],
     [-C_333, -C_111, C_111, C_333],
     [C_333, C_111, -C_111, -C_333],
     [1, C_333, -C_333, -1]],
    # n=3, m=1 (real)
    [[C_294, C_333, -C_333, -C_294],
     [1, C_569, -C_569, -1],
     [1, C_569, -C_569, -1],
     [C_294, C_333, -C_333, -C_294]],
    # n=3, m=1 (imag)
    [[-C_294, -1, -1, -C_294],
     [-C_333, -C_569, -C_569, -C_333],
     [C_333, C_569, C_569, C_333],
     [C_294, 1, 1, C_294]],
    # n=3, m=3 (real)
    [[1, C_481, -C_481, -1],
     [-C_333, C_037, -C_037, C_333],
     [-C_333, C_037, -C_037, C_333],
     [1, C_481, -C_481, -1]],
    # n=3, m=3 (imag)
    [[1, -C_333, -C_333, 1],
     [C_481, C_037, C_037, C_481],
     [-C_481, -C_037, -C_037, -C_481],
     [-1, C_333, C_333, -1]],
], dtype=np.float64)
APPROXIMATED_CORE_FILTERS.setflags(write=False)


class FilterType(Enum):
    REGULAR = "regular"
    APPROXIMATED = "approximated"

    @classmethod
    def parse(cls, value: Union["FilterType", str]) -> "FilterType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidConfigurationError(
                f"Unknown filter type {value!r}, expected one of "
                f"{[member.value for member in cls]}"
            ) from None


def validate_extractor_parameters(filter_type: FilterType, patch_size: int,
                                  step_size: int, moment_order: int):
    """
    Validate pattern extractor parameters

    Raises:
        InvalidConfigurationError: Sizes or moment order out of range
        UnsupportedCombinationError: Approximated extractor with a patch or
            step size that cannot be mapped onto the 4x4 core grid
    """
    if patch_size <= 3:
        raise InvalidConfigurationError(f"Patch size must be greater than 3, got {patch_size}")
    if not 0 < step_size < patch_size:
        raise InvalidConfigurationError(
            f"Step size must be in (0, {patch_size}), got {step_size}"
        )
    if not 0 < moment_order <= MAX_MOMENT_ORDER:
        raise InvalidConfigurationError(
            f"Moment order must be in [1, {MAX_MOMENT_ORDER}], got {moment_order}"
        )

    if filter_type is FilterType.APPROXIMATED:
        if patch_size % FILTER_CORE_SIZE != 0:
            raise UnsupportedCombinationError(
                f"Approximated filters require a patch size divisible by "
                f"{FILTER_CORE_SIZE}, got {patch_size}"
            )
        if patch_size % step_size != 0:
            raise UnsupportedCombinationError(
                f"Approximated filters require an integer overlap density, "
                f"got patch size {patch_size} and step size {step_size}"
            )
        scale = patch_size // FILTER_CORE_SIZE
        if step_size % scale != 0:
            raise UnsupportedCombinationError(
                f"Approximated filters require a step size divisible by {scale} "
                f"(patch size / {FILTER_CORE_SIZE}), got {step_size}"
            )


def create_filters(generator: ZernikeBasisGenerator, moment_order: int) -> List[np.ndarray]:
    """
    Build the filter bank from every basis up to the given moment order

    Bases with m = 0 carry no orientation and are skipped. The real and
    imaginary parts of each remaining basis are min-max rescaled to [-1, 1]
    independently.
    """
    filters = []
    for n in range(moment_order + 1):
        for basis in generator.generate(n):
            if basis.m == 0:
                continue
            for part in (basis.real, basis.imag):
                kernel = cv2.normalize(part, None, -1, 1, cv2.NORM_MINMAX, dtype=cv2.CV_64F)
                kernel.setflags(write=False)
                filters.append(kernel)
    return filters


def encode_patches(values: np.ndarray, window_size: int, step_size: int,
                   kernels: np.ndarray) -> np.ndarray:
    """
    Slide a window over the image and pack the projection signs into codes

    Windows are projected a block of rows at a time, so no more than
    PROJECTION_CHUNK_SIZE window values are copied at once.

    Args:
        values: Float image [H, W]
        window_size: Edge length of the sliding window
        step_size: Window stride in both axes
        kernels: Filter stack [K, window_size, window_size], K <= 8

    Returns:
        Pattern image [(H - window) // step + 1, (W - window) // step + 1], uint8.
        Bit k of each code is set when the window's projection onto kernel k
        is positive beyond rounding error.
    """
    windows = view_as_windows(values, (window_size, window_size), step_size)
    rows, cols = windows.shape[:2]
    kernel_bound = np.abs(kernels).max()

    codes = np.zeros((rows, cols), dtype=np.uint8)
    chunk_rows = max(1, PROJECTION_CHUNK_SIZE // (cols * window_size * window_size))

    for start in range(0, rows, chunk_rows):
        chunk = windows[start:start + chunk_rows]
        responses = np.tensordot(chunk, kernels, axes=([2, 3], [1, 2]))

        # Rounding error of a projection is bounded by the window's L1 norm times the kernel bound
        tolerance = ROUNDING_TOLERANCE * kernel_bound * np.abs(chunk).sum(axis=(2, 3))

        block = codes[start:start + chunk_rows]
        for k in range(kernels.shape[0]):
            block |= (responses[..., k] > tolerance).astype(np.uint8) << k

    return codes


def _as_single_channel(image: np.ndarray, patch_size: int) -> np.ndarray:
    if image is None or image.size == 0:
        raise InvalidInputError("Input image is empty")
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim != 2:
        raise InvalidInputError(f"Expected a single-channel image, got shape {image.shape}")
    if image.shape[0] < patch_size or image.shape[1] < patch_size:
        raise InvalidInputError(
            f"Image of shape {image.shape} is smaller than the {patch_size}x{patch_size} patch"
        )
    return image.astype(np.float64)


class PatternImageExtractor(ABC):
    """
    Base pattern image extractor

    Holds the validated sampling parameters and the Zernike filter bank.
    Subclasses set filter_type and decide how windows are sampled and
    projected.
    """

    filter_type: FilterType

    def __init__(self, patch_size: int = 32, step_size: int = 8, moment_order: int = 2):
        """
        Initialize pattern image extractor

        Args:
            patch_size: Edge length of the sliding window (> 3)
            step_size: Stride of the sliding window (0 < step < patch)
            moment_order: Highest Zernike radial order in the filter bank (1-3)
        """
        validate_extractor_parameters(self.filter_type, patch_size, step_size, moment_order)

        self.patch_size = patch_size
        self.step_size = step_size
        self.moment_order = moment_order
        self._filters = create_filters(self._basis_generator(), moment_order)

        logger.debug("%s extractor built %d filters (patch=%d, step=%d, order=%d)",
                     self.filter_type.value, len(self._filters),
                     patch_size, step_size, moment_order)

    @staticmethod
    def create(filter_type: Union[FilterType, str], patch_size: int, step_size: int,
               moment_order: int) -> "PatternImageExtractor":
        """Create the extractor matching the requested filter type"""
        filter_type = FilterType.parse(filter_type)
        if filter_type is FilterType.REGULAR:
            return RegularPatternImageExtractor(patch_size, step_size, moment_order)
        return ApproximatedPatternImageExtractor(patch_size, step_size, moment_order)

    @abstractmethod
    def _basis_generator(self) -> ZernikeBasisGenerator:
        """Generator of the bases the filter bank is built from"""

    def filters(self) -> List[np.ndarray]:
        """Snapshot of the filter bank (read-only kernels)"""
        return list(self._filters)

    @property
    def bin_count(self) -> int:
        """Number of distinct pattern codes"""
        return 2 ** len(self._filters)

    def overlap_density(self) -> int:
        """Number of windows overlapping each pixel along one axis"""
        if self.patch_size % self.step_size != 0:
            raise InvalidConfigurationError(
                f"Patch size {self.patch_size} is not a multiple of step size {self.step_size}"
            )
        return self.patch_size // self.step_size

    @abstractmethod
    def extract(self, image: np.ndarray) -> np.ndarray:
        """Compute the pattern image of a single-channel image"""


class RegularPatternImageExtractor(PatternImageExtractor):
    """Pattern extractor projecting full-resolution windows onto the exact filter bank"""

    filter_type = FilterType.REGULAR

    def _basis_generator(self) -> ZernikeBasisGenerator:
        return ZernikeBasisGenerator(self.patch_size)

    def extract(self, image: np.ndarray) -> np.ndarray:
        """
        Compute the pattern image

        Args:
            image: Single-channel image [H, W]

        Returns:
            Pattern image [(H - patch) // step + 1, (W - patch) // step + 1], uint8
        """
        values = _as_single_channel(image, self.patch_size)
        return encode_patches(values, self.patch_size, self.step_size, np.stack(self._filters))


class ApproximatedPatternImageExtractor(PatternImageExtractor):
    """
    Fast pattern extractor

    The image is shrunk by patch_size / 4 with area interpolation so every
    patch collapses onto a 4x4 window, which is then projected onto the fixed
    4x4 core filters in APPROXIMATED_CORE_FILTERS.
    """

    filter_type = FilterType.APPROXIMATED

    def _basis_generator(self) -> ZernikeBasisGenerator:
        return ApproximatedZernikeBasisGenerator(self.patch_size, FILTER_CORE_SIZE)

    def core_filters(self) -> np.ndarray:
        """Core filters used by extract, one per bit of the pattern code"""
        return APPROXIMATED_CORE_FILTERS[:len(self._filters)]

    def extract(self, image: np.ndarray) -> np.ndarray:
        """
        Compute the pattern image on the downsampled image

        Args:
            image: Single-channel image [H, W]

        Returns:
            Pattern image, uint8
        """
        values = _as_single_channel(image, self.patch_size)

        scale = self.patch_size // FILTER_CORE_SIZE
        step = self.step_size // scale

        values = cv2.resize(values, None, fx=1.0 / scale, fy=1.0 / scale,
                            interpolation=cv2.INTER_AREA)
        if values.shape[0] < FILTER_CORE_SIZE or values.shape[1] < FILTER_CORE_SIZE:
            raise InvalidInputError(
                f"Image of shape {image.shape} is too small for patch size {self.patch_size}"
            )

        return encode_patches(values, FILTER_CORE_SIZE, step, self.core_filters())
