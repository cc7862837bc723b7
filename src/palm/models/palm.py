import logging
import dataclasses
from dataclasses import dataclass, fields
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist, cityblock

from .components.pattern_extractor import (
    FilterType,
    PatternImageExtractor,
    validate_extractor_parameters,
)
from .components.histogram_builder import HistogramBuilder
from ..errors import InvalidConfigurationError, InvalidInputError, NotInitializedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PALMConfig:
    """
    Validated PALM configuration

    Attributes:
        patch_size: Edge length of the sliding window
        grid_size: Number of histogram regions along each axis
        step_size: Stride of the sliding window
        moment_order: Highest Zernike radial order in the filter bank
        filter_type: Regular (exact) or approximated (fast) filters
        apply_inside_partitioning: Append the half-region shifted grid
    """
    patch_size: int = 32
    grid_size: int = 5
    step_size: int = 8
    moment_order: int = 2
    filter_type: FilterType = FilterType.APPROXIMATED
    apply_inside_partitioning: bool = True

    def __post_init__(self):
        object.__setattr__(self, "filter_type", FilterType.parse(self.filter_type))
        validate_extractor_parameters(self.filter_type, self.patch_size,
                                      self.step_size, self.moment_order)
        if self.grid_size <= 0:
            raise InvalidConfigurationError(f"Grid size must be positive, got {self.grid_size}")

    @classmethod
    def from_dict(cls, config: Mapping) -> "PALMConfig":
        """
        Build a configuration from a plain mapping, such as the "model"
        section of a config file. Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise InvalidConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**config)

    def replace(self, **changes) -> "PALMConfig":
        """Return a validated copy with the given fields changed"""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict:
        return {
            "patch_size": self.patch_size,
            "grid_size": self.grid_size,
            "step_size": self.step_size,
            "moment_order": self.moment_order,
            "filter_type": self.filter_type.value,
            "apply_inside_partitioning": self.apply_inside_partitioning,
        }


class PALMResult(NamedTuple):
    """Descriptor together with the pattern image it was built from"""
    descriptor: np.ndarray
    pattern_image: np.ndarray


class PALM:
    """
    Patch-wise Approximated Local Moments descriptor

    Main class that wires the descriptor pipeline:
    1. Zernike filter bank construction (done once, at initialization)
    2. Pattern image extraction (sign of each window's filter projections)
    3. Spatial histogram of pattern codes over a grid
    4. L1 distance between descriptors
    """

    def __init__(self, config: Optional[PALMConfig] = None, initialize: bool = True):
        """
        Initialize PALM pipeline

        Args:
            config: Pipeline configuration (defaults to PALMConfig())
            initialize: Build the extractor and histogram builder right away
        """
        self.config = config if config is not None else PALMConfig()
        self.extractor: Optional[PatternImageExtractor] = None
        self.histogram_builder: Optional[HistogramBuilder] = None
        self._last_pattern_image: Optional[np.ndarray] = None

        if initialize:
            self.initialize()

    def with_config(self, config: PALMConfig) -> "PALM":
        """Return a new, initialized pipeline using another configuration"""
        return PALM(config, initialize=True)

    def initialize(self):
        """(Re)build the pattern extractor and histogram builder from the config"""
        extractor = PatternImageExtractor.create(
            self.config.filter_type,
            self.config.patch_size,
            self.config.step_size,
            self.config.moment_order,
        )
        histogram_builder = HistogramBuilder(
            grid_size=self.config.grid_size,
            bin_count=extractor.bin_count,
            apply_inside_partitioning=self.config.apply_inside_partitioning,
        )

        self.extractor = extractor
        self.histogram_builder = histogram_builder

        logger.info("PALM initialized with %s filters (bank size %d, descriptor size %d)",
                    self.config.filter_type.value, len(extractor.filters()),
                    histogram_builder.histogram_length())

    def is_initialized(self) -> bool:
        return self.extractor is not None and self.histogram_builder is not None

    def _require_initialized(self):
        if not self.is_initialized():
            raise NotInitializedError("PALM is not initialized, call initialize() first")

    def descriptor_size(self) -> int:
        """Length of a single descriptor"""
        self._require_initialized()
        return self.histogram_builder.histogram_length()

    def filters(self) -> List[np.ndarray]:
        """Snapshot of the extractor's filter bank"""
        self._require_initialized()
        return self.extractor.filters()

    def last_pattern_image(self) -> np.ndarray:
        """Pattern image of the most recent compute call"""
        if self._last_pattern_image is None:
            raise NotInitializedError("No pattern image available, call compute() first")
        return self._last_pattern_image

    def describe(self, image: np.ndarray) -> PALMResult:
        """
        Compute the descriptor and pattern image of a single image

        Does not touch the cached pattern image, so one initialized pipeline
        can be shared between threads through this method.

        Args:
            image: Single-channel image [H, W]

        Returns:
            PALMResult(descriptor [descriptor_size()], pattern_image [h, w] uint8)
        """
        self._require_initialized()

        pattern_image = self.extractor.extract(image)
        descriptor = self.histogram_builder.build(pattern_image)

        return PALMResult(descriptor, pattern_image)

    def compute(self, image: np.ndarray) -> np.ndarray:
        """
        Compute the descriptor of a single image

        The intermediate pattern image replaces the one returned by
        last_pattern_image().

        Args:
            image: Single-channel image [H, W]

        Returns:
            Descriptor vector [descriptor_size()], float64
        """
        descriptor, pattern_image = self.describe(image)
        self._last_pattern_image = pattern_image
        return descriptor

    def compute_batch(self, images: Sequence[np.ndarray], row_stack: bool = False) -> np.ndarray:
        """
        Compute descriptors for several images

        Args:
            images: Single-channel images
            row_stack: Stack one descriptor per row instead of concatenating

        Returns:
            [len(images), descriptor_size()] if row_stack, otherwise
            [len(images) * descriptor_size()] with descriptors in image order

        On success the last image's pattern image becomes last_pattern_image();
        a failing image leaves it untouched.
        """
        self._require_initialized()
        if len(images) == 0:
            raise InvalidInputError("At least one image is required")

        size = self.descriptor_size()
        descriptors = np.zeros((len(images), size), dtype=np.float64)

        # The cached pattern image is only replaced once every image succeeded
        pattern_image = None
        for i, image in enumerate(images):
            descriptors[i], pattern_image = self.describe(image)
            logger.debug("Computed descriptor %d/%d", i + 1, len(images))

        self._last_pattern_image = pattern_image
        return descriptors if row_stack else descriptors.ravel()

    @staticmethod
    def _as_row(descriptor: np.ndarray, name: str) -> np.ndarray:
        descriptor = np.asarray(descriptor, dtype=np.float64)
        if descriptor.ndim == 2 and descriptor.shape[0] == 1:
            descriptor = descriptor[0]
        if descriptor.ndim != 1 or descriptor.size == 0:
            raise InvalidInputError(
                f"{name} must be a non-empty single-row vector, got shape {descriptor.shape}"
            )
        return descriptor

    def distance(self, desc1: np.ndarray, desc2: np.ndarray) -> float:
        """
        L1 distance between two descriptors

        Args:
            desc1: Descriptor [N] or [1, N]
            desc2: Descriptor [N] or [1, N]

        Returns:
            Sum of absolute element-wise differences
        """
        desc1 = self._as_row(desc1, "desc1")
        desc2 = self._as_row(desc2, "desc2")
        if desc1.size != desc2.size:
            raise InvalidInputError(
                f"Descriptor lengths differ: {desc1.size} != {desc2.size}"
            )
        return float(cityblock(desc1, desc2))

    def pairwise_distances(self, desc1: np.ndarray, desc2: np.ndarray) -> np.ndarray:
        """
        L1 distances between two sets of row-stacked descriptors

        Args:
            desc1: Descriptors [N, D]
            desc2: Descriptors [M, D]

        Returns:
            Distance matrix [N, M]
        """
        desc1 = np.atleast_2d(np.asarray(desc1, dtype=np.float64))
        desc2 = np.atleast_2d(np.asarray(desc2, dtype=np.float64))
        if desc1.ndim != 2 or desc2.ndim != 2 or desc1.shape[1] != desc2.shape[1]:
            raise InvalidInputError(
                f"Descriptor sets must share their length, got {desc1.shape} and {desc2.shape}"
            )
        return cdist(desc1, desc2, metric="cityblock")
