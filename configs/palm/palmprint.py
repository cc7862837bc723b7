# Configuration for palmprint / texture descriptor computation

config = {
    "model": {
        "patch_size": 32,
        "grid_size": 5,
        "step_size": 8,
        "moment_order": 2,
        "filter_type": "approximated",  # "regular" for the exact filter bank
        "apply_inside_partitioning": True,
    },

    "illumination": {
        "enabled": False,  # requires color input images
        "alpha": 0.3,
    },

    "preprocessing": {
        "resize": None,  # (width, height) or None to keep the input size
    },

    "visualization": {
        "save_pattern_images": True,
        "pattern_image_at_input_size": True,
    },
}
