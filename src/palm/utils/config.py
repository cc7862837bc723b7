import os
import importlib.util
from typing import Dict

from ..models.palm import PALMConfig

DEFAULT_CONFIG = {
    "model": PALMConfig().to_dict(),
    "illumination": {"enabled": False, "alpha": 0.3},
    "preprocessing": {"resize": None},
    "visualization": {"save_pattern_images": True, "pattern_image_at_input_size": True},
}


def load_config(config_path: str) -> Dict:
    """
    Load configuration from a Python file defining a `config` dict

    Sections missing from the file are taken from DEFAULT_CONFIG. A missing
    file yields the defaults.
    """
    config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

    if config_path and os.path.exists(config_path):
        spec = importlib.util.spec_from_file_location("config", config_path)
        config_module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(config_module)
        for section, values in config_module.config.items():
            config.setdefault(section, {}).update(values)

    return config


def model_config(config: Dict) -> PALMConfig:
    """Validated PALMConfig from the "model" section of a loaded config"""
    return PALMConfig.from_dict(config.get("model", {}))
