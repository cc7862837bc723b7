"""PALM - Patch-wise Approximated Local Moments texture descriptor"""

__version__ = "1.0.0"
__author__ = "PALM Team"

from .models.palm import PALM, PALMConfig, PALMResult
from .models.components.pattern_extractor import FilterType
from .utils.visualization import PALMVisualizer

__all__ = ['PALM', 'PALMConfig', 'PALMResult', 'FilterType', 'PALMVisualizer']
