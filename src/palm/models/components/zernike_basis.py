import math
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

import numpy as np
import cv2

from ...errors import InvalidOrderError, InvalidConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZernikeBasis:
    """
    Complex Zernike basis function sampled on a square grid

    Attributes:
        n: Radial order
        m: Angular order
        real: Real part of the conjugated basis [size, size]
        imag: Imaginary part of the conjugated basis [size, size]
    """
    n: int
    m: int
    real: np.ndarray
    imag: np.ndarray

    def __post_init__(self):
        self.real.setflags(write=False)
        self.imag.setflags(write=False)

    @property
    def size(self) -> int:
        return self.real.shape[0]


def is_valid_order(n: int, m: int) -> bool:
    """Check the Zernike order relation |m| <= n with n - |m| even"""
    m_abs = abs(m)
    return n >= 0 and m_abs <= n and (n - m_abs) % 2 == 0


class ZernikeBasisGenerator:
    """
    Exact Zernike basis generator

    Every pixel of a size x size grid is mapped into the unit disk (the square
    is inscribed in the disk, D = size * sqrt(2)) and the radial polynomial is
    evaluated there directly.
    """

    def __init__(self, size: int):
        """
        Initialize basis generator

        Args:
            size: Edge length of the generated basis grids (> 1)
        """
        if size <= 1:
            raise InvalidConfigurationError(f"Basis size must be greater than 1, got {size}")
        self.size = size

    def generate(self, n: int, m: Optional[int] = None) -> Union[ZernikeBasis, List[ZernikeBasis]]:
        """
        Generate Zernike basis functions

        Args:
            n: Radial order (>= 0)
            m: Angular order (>= 0, |m| <= n, n - |m| even). When omitted,
               every valid basis of radial order n is generated.

        Returns:
            ZernikeBasis for (n, m), or the list of bases for m = 0..n
            satisfying the order relation in increasing m
        """
        if m is None:
            if n < 0:
                raise InvalidOrderError(f"Radial order must be non-negative, got {n}")
            return [self.generate(n, k) for k in range(n + 1) if is_valid_order(n, k)]

        if n < 0 or m < 0:
            raise InvalidOrderError(f"Orders must be non-negative, got n={n}, m={m}")
        if not is_valid_order(n, m):
            raise InvalidOrderError(
                f"Invalid Zernike order (n={n}, m={m}): requires |m| <= n and n - |m| even"
            )

        real, imag = self._compute(n, m)
        return ZernikeBasis(n, m, real, imag)

    def _compute(self, n: int, m: int) -> Tuple[np.ndarray, np.ndarray]:
        return compute_zernike_basis(n, m, self.size)


class ApproximatedZernikeBasisGenerator(ZernikeBasisGenerator):
    """
    Zernike basis generator that evaluates the polynomial on a small core grid
    and upsamples it to the requested size with area interpolation
    """

    def __init__(self, size: int, core_size: int = 4):
        """
        Initialize approximated basis generator

        Args:
            size: Edge length of the generated basis grids
            core_size: Edge length of the grid the polynomial is evaluated on
        """
        super().__init__(size)
        if core_size <= 1 or core_size > size:
            raise InvalidConfigurationError(
                f"Core size must be in (1, {size}], got {core_size}"
            )
        self.core_size = core_size

    def _compute(self, n: int, m: int) -> Tuple[np.ndarray, np.ndarray]:
        real, imag = compute_zernike_basis(n, m, self.core_size)

        target = (self.size, self.size)
        real = cv2.resize(real, target, interpolation=cv2.INTER_AREA)
        imag = cv2.resize(imag, target, interpolation=cv2.INTER_AREA)

        return real, imag


def compute_zernike_basis(n: int, m: int, size: int):
    """
    Sample the conjugated Zernike basis V*(n, m) on a size x size grid

    Args:
        n: Radial order
        m: Angular order
        size: Grid edge length

    Returns:
        real: Real part [size, size], float64
        imag: Imaginary part [size, size], float64
    """
    diagonal = size * np.sqrt(2.0)
    coords = (2.0 * np.arange(size) + 1.0 - size) / diagonal
    xn, yn = np.meshgrid(coords, coords)

    rho = np.sqrt(xn * xn + yn * yn)
    theta = np.mod(np.arctan2(yn, xn), 2 * np.pi)

    radial = np.zeros_like(rho)
    for s in range((n - m) // 2 + 1):
        coefficient = ((-1.0) ** s * math.factorial(n - s) /
                       (math.factorial(s) *
                        math.factorial((n - 2 * s + m) // 2) *
                        math.factorial((n - 2 * s - m) // 2)))
        radial += coefficient * rho ** (n - 2 * s)

    value = radial * (4.0 / (diagonal * diagonal)) * np.exp(1j * m * theta)
    value = np.conj(value)

    logger.debug("Computed Zernike basis n=%d m=%d on %dx%d grid", n, m, size, size)

    return np.ascontiguousarray(value.real), np.ascontiguousarray(value.imag)
