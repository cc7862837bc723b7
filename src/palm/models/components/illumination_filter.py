import numpy as np

from ...errors import InvalidConfigurationError, InvalidInputError


class IlluminationFilter:
    """
    Illumination-invariant single-channel transform of a color image

    Each pixel is mapped to 0.5 + ln(g) - alpha * ln(b) - (1 - alpha) * ln(r),
    with channels scaled to [0, 1] and the result clamped to [0, 1]. Pixels
    where the expression is undefined (zero green together with zero blue or
    red) are mapped to 0.
    """

    def __init__(self, alpha: float = 0.3, return_type=np.uint8):
        """
        Initialize illumination filter

        Args:
            alpha: Blue channel weight in (0, 1); red gets 1 - alpha
            return_type: np.uint8 (scaled to 0..255) or np.float64 (0..1)
        """
        if not 0 < alpha < 1:
            raise InvalidConfigurationError(f"Alpha must be in (0, 1), got {alpha}")
        if return_type not in (np.uint8, np.float64):
            raise InvalidConfigurationError(
                f"Return type must be np.uint8 or np.float64, got {return_type}"
            )

        self.alpha = alpha
        self.return_type = return_type

    def apply(self, image: np.ndarray) -> np.ndarray:
        """
        Apply the filter

        Args:
            image: BGR image [H, W, 3], uint8

        Returns:
            Filtered image [H, W] of the configured return type
        """
        if image is None or image.size == 0:
            raise InvalidInputError("Input image is empty")
        if image.ndim != 3 or image.shape[2] != 3 or image.dtype != np.uint8:
            raise InvalidInputError(
                f"Expected a 3-channel uint8 image, got shape {image.shape} and dtype {image.dtype}"
            )

        bgr = image.astype(np.float64) / 255.0
        b, g, r = bgr[:, :, 0], bgr[:, :, 1], bgr[:, :, 2]

        with np.errstate(divide="ignore", invalid="ignore"):
            values = 0.5 + np.log(g) - self.alpha * np.log(b) - (1 - self.alpha) * np.log(r)

        values = np.nan_to_num(values, nan=0.0)
        values = np.clip(values, 0.0, 1.0)

        if self.return_type is np.uint8:
            return (values * 255.0).astype(np.uint8)
        return values
