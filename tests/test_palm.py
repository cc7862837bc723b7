import dataclasses
import pytest
import numpy as np
import cv2
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from palm.models.palm import PALM, PALMConfig, PALMResult
from palm.models.components.pattern_extractor import FilterType
from palm.utils.config import load_config, model_config
from palm.utils.visualization import PALMVisualizer
from palm.datasets.image_pairs import ImagePairDataset, ImagePairTransforms
from palm.errors import (
    InvalidConfigurationError,
    InvalidInputError,
    NotInitializedError,
    UnsupportedCombinationError,
)

CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'configs', 'palm', 'palmprint.py')


def line_texture(size=256, angle=0.6, noise=0.0, seed=0):
    """Oriented sinusoidal line texture as uint8"""
    rng = np.random.RandomState(seed)
    y, x = np.mgrid[0:size, 0:size].astype(np.float64)
    texture = np.sin(0.2 * (x * np.cos(angle) + y * np.sin(angle))) * 100 + 128
    texture += rng.normal(0, noise, texture.shape) if noise else 0
    return np.clip(texture, 0, 255).astype(np.uint8)


class TestPALM:
    """Test cases for the PALM pipeline"""

    @pytest.fixture
    def sample_image(self):
        """Create a sample test image"""
        np.random.seed(42)
        image = np.random.rand(256, 256) * 255
        image = image.astype(np.uint8)

        # Add some structure
        cv2.circle(image, (128, 128), 30, 100, -1)
        cv2.line(image, (20, 200), (230, 40), 220, 4)
        cv2.line(image, (30, 60), (200, 220), 40, 3)

        return image

    @pytest.fixture
    def palm_model(self):
        """Create PALM model with the default configuration"""
        return PALM()

    @pytest.fixture
    def regular_model(self):
        return PALM(PALMConfig(filter_type=FilterType.REGULAR))

    def test_default_configuration(self, palm_model):
        config = palm_model.config
        assert (config.patch_size, config.grid_size, config.step_size) == (32, 5, 8)
        assert config.moment_order == 2
        assert config.filter_type is FilterType.APPROXIMATED
        assert config.apply_inside_partitioning
        assert palm_model.is_initialized()

    def test_descriptor_size(self, palm_model, regular_model):
        # Moment order 2 -> 4 filters -> 16 bins; 5x5 grid plus 4x4 inside grid
        assert palm_model.descriptor_size() == 5 * 5 * 16 + 4 * 4 * 16 == 2576
        assert regular_model.descriptor_size() == 2576
        assert len(regular_model.filters()) == 4

        no_inside = PALM(PALMConfig(apply_inside_partitioning=False, moment_order=3))
        assert no_inside.descriptor_size() == 5 * 5 * 256

    @pytest.mark.parametrize("model", ["palm_model", "regular_model"])
    def test_compute(self, request, model, sample_image):
        palm = request.getfixturevalue(model)
        descriptor = palm.compute(sample_image)

        assert descriptor.shape == (palm.descriptor_size(),)
        assert descriptor.dtype == np.float64
        assert np.allclose(np.linalg.norm(descriptor.reshape(-1, 16), axis=1), 1.0)

        pattern_image = palm.last_pattern_image()
        assert pattern_image.shape == (29, 29)
        assert pattern_image.dtype == np.uint8

    def test_last_pattern_image_overwritten(self, palm_model, sample_image):
        with pytest.raises(NotInitializedError):
            palm_model.last_pattern_image()

        palm_model.compute(sample_image)
        first = palm_model.last_pattern_image()

        palm_model.compute(sample_image[:128, :192])
        second = palm_model.last_pattern_image()
        assert first.shape == (29, 29)
        assert second.shape == ((128 - 32) // 8 + 1, (192 - 32) // 8 + 1)

    def test_describe(self, palm_model, sample_image):
        result = palm_model.describe(sample_image)
        assert isinstance(result, PALMResult)
        assert np.array_equal(result.descriptor, palm_model.compute(sample_image))
        assert np.array_equal(result.pattern_image, palm_model.last_pattern_image())

    def test_describe_leaves_cache_untouched(self, palm_model, sample_image):
        palm_model.describe(sample_image)
        with pytest.raises(NotInitializedError):
            palm_model.last_pattern_image()

    def test_not_initialized(self, sample_image):
        palm = PALM(initialize=False)
        assert not palm.is_initialized()

        with pytest.raises(NotInitializedError):
            palm.compute(sample_image)
        with pytest.raises(NotInitializedError):
            palm.descriptor_size()
        with pytest.raises(NotInitializedError):
            palm.compute_batch([sample_image])

        palm.initialize()
        assert palm.is_initialized()
        assert palm.compute(sample_image).shape == (palm.descriptor_size(),)

    def test_batch_row_stack(self, palm_model, sample_image):
        images = [sample_image, cv2.GaussianBlur(sample_image, (5, 5), 1.5), sample_image[:, ::-1].copy()]
        descriptors = palm_model.compute_batch(images, row_stack=True)

        assert descriptors.shape == (3, palm_model.descriptor_size())
        for i, image in enumerate(images):
            assert np.array_equal(descriptors[i], palm_model.compute(image))

    def test_batch_concatenated(self, palm_model, sample_image):
        images = [sample_image, sample_image[::-1].copy()]
        descriptors = palm_model.compute_batch(images)
        size = palm_model.descriptor_size()

        assert descriptors.shape == (2 * size,)
        assert np.array_equal(descriptors[:size], palm_model.compute(images[0]))
        assert np.array_equal(descriptors[size:], palm_model.compute(images[1]))

    def test_batch_failures(self, palm_model, sample_image):
        with pytest.raises(InvalidInputError):
            palm_model.compute_batch([])
        with pytest.raises(InvalidInputError):
            palm_model.compute_batch([sample_image, np.zeros((64, 64, 3), dtype=np.uint8)])

    def test_batch_failure_keeps_pattern_image(self, palm_model, sample_image):
        palm_model.compute(sample_image)
        before = palm_model.last_pattern_image().copy()

        with pytest.raises(InvalidInputError):
            palm_model.compute_batch([sample_image[:128, :192], np.zeros((8, 8), dtype=np.uint8)])

        assert np.array_equal(palm_model.last_pattern_image(), before)

    def test_batch_sets_last_pattern_image(self, palm_model, sample_image):
        palm_model.compute_batch([sample_image, sample_image[:128, :192]])
        assert palm_model.last_pattern_image().shape == ((128 - 32) // 8 + 1, (192 - 32) // 8 + 1)

    def test_distance(self, palm_model, sample_image):
        desc1 = palm_model.compute(sample_image)
        desc2 = palm_model.compute(cv2.GaussianBlur(sample_image, (5, 5), 2.0))

        assert palm_model.distance(desc1, desc1) == 0.0
        assert palm_model.distance(desc1, desc2) == palm_model.distance(desc2, desc1)
        assert np.isclose(palm_model.distance(desc1, desc2), np.abs(desc1 - desc2).sum())
        assert palm_model.distance(desc1[np.newaxis, :], desc2) == palm_model.distance(desc1, desc2)

    def test_distance_invalid_input(self, palm_model):
        with pytest.raises(InvalidInputError):
            palm_model.distance(np.ones(10), np.ones(11))
        with pytest.raises(InvalidInputError):
            palm_model.distance(np.ones((2, 10)), np.ones((2, 10)))
        with pytest.raises(InvalidInputError):
            palm_model.distance(np.ones(0), np.ones(0))

    def test_pairwise_distances(self, palm_model, sample_image):
        images = [sample_image, cv2.GaussianBlur(sample_image, (3, 3), 1.0)]
        descriptors = palm_model.compute_batch(images, row_stack=True)
        distances = palm_model.pairwise_distances(descriptors, descriptors)

        assert distances.shape == (2, 2)
        assert np.allclose(np.diag(distances), 0.0)
        assert np.isclose(distances[0, 1], palm_model.distance(descriptors[0], descriptors[1]))

        with pytest.raises(InvalidInputError):
            palm_model.pairwise_distances(descriptors, descriptors[:, :10])

    @pytest.mark.parametrize("filter_type", list(FilterType))
    def test_similar_textures_are_closer(self, filter_type):
        palm = PALM(PALMConfig(filter_type=filter_type))
        reference = palm.compute(line_texture(angle=0.6))
        noisy = palm.compute(line_texture(angle=0.6, noise=2.0, seed=1))
        rotated = palm.compute(line_texture(angle=0.6 + np.pi / 2))

        assert palm.distance(reference, noisy) < palm.distance(reference, rotated)

    def test_with_config(self, palm_model):
        other = palm_model.with_config(palm_model.config.replace(moment_order=1))
        assert other is not palm_model
        assert other.descriptor_size() == (25 + 16) * 4
        assert palm_model.descriptor_size() == 2576


class TestPALMConfig:
    """Test cases for configuration validation"""

    @pytest.mark.parametrize("changes", [
        {"step_size": 32},
        {"step_size": 0},
        {"patch_size": 3},
        {"grid_size": 0},
        {"moment_order": 0},
        {"moment_order": 4},
        {"filter_type": "fancy"},
    ])
    def test_invalid_configuration(self, changes):
        with pytest.raises(InvalidConfigurationError):
            PALMConfig(**changes)

    @pytest.mark.parametrize("changes", [
        {"patch_size": 30, "step_size": 6},
        {"patch_size": 32, "step_size": 4},
        {"patch_size": 32, "step_size": 12},
    ])
    def test_unsupported_approximated(self, changes):
        with pytest.raises(UnsupportedCombinationError):
            PALMConfig(filter_type=FilterType.APPROXIMATED, **changes)
        assert PALMConfig(filter_type=FilterType.REGULAR, **changes).patch_size == changes["patch_size"]

    def test_string_filter_type(self):
        assert PALMConfig(filter_type="regular").filter_type is FilterType.REGULAR

    def test_immutable(self):
        config = PALMConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.grid_size = 3

    def test_replace_validates(self):
        config = PALMConfig()
        assert config.replace(grid_size=3).grid_size == 3
        assert config.grid_size == 5
        with pytest.raises(InvalidConfigurationError):
            config.replace(grid_size=-1)

    def test_dict_round_trip(self):
        config = PALMConfig(filter_type=FilterType.REGULAR, moment_order=3)
        assert PALMConfig.from_dict(config.to_dict()) == config
        with pytest.raises(InvalidConfigurationError):
            PALMConfig.from_dict({"grid": 5})

    def test_load_config_file(self):
        config = load_config(CONFIG_PATH)
        assert config["model"]["patch_size"] == 32
        assert model_config(config) == PALMConfig()

    def test_load_config_defaults(self):
        config = load_config(None)
        assert model_config(config) == PALMConfig()
        assert config["illumination"]["alpha"] == 0.3


class TestPALMUtilities:
    """Test cases for visualization helpers and datasets"""

    def test_pattern_image_to_uint8(self):
        pattern_image = np.array([[0, 15], [5, 10]], dtype=np.uint8)

        normalized = PALMVisualizer.pattern_image_to_uint8(pattern_image)
        assert normalized.dtype == np.uint8
        assert normalized.min() == 0 and normalized.max() == 255
        assert normalized[0, 1] == 255

        resized = PALMVisualizer.pattern_image_to_uint8(pattern_image, size=(8, 6))
        assert resized.shape == (8, 6)

    def test_plot_descriptors_saves_figure(self, tmp_path):
        palm = PALM()
        descriptors = palm.compute_batch([line_texture(128, angle=0.2), line_texture(128, angle=1.4)],
                                         row_stack=True)
        save_path = tmp_path / "descriptors.png"

        PALMVisualizer.plot_descriptors(list(descriptors), labels=["a", "b"], bin_count=16,
                                        save_path=str(save_path))
        plt.close('all')

        assert save_path.exists()

    def test_image_pair_dataset(self, tmp_path):
        for i in range(4):
            cv2.imwrite(str(tmp_path / f"img_{i}.png"), line_texture(64, angle=0.3 * i))

        dataset = ImagePairDataset(str(tmp_path))
        assert len(dataset) == 2
        sample = dataset[0]
        assert sample['image1'].shape == (64, 64)
        assert sample['label'] is None

        pairs_file = tmp_path / "pairs.txt"
        pairs_file.write_text("# image1 image2 label\nimg_0.png img_1.png 1\nimg_0.png img_3.png 0\n")
        dataset = ImagePairDataset(str(tmp_path), str(pairs_file),
                                   transform=ImagePairTransforms.resize((32, 48)))
        assert len(dataset) == 2
        assert dataset[1]['label'] == 0
        assert dataset[1]['image2'].shape == (48, 32)

    def test_dataset_missing_image(self, tmp_path):
        pairs_file = tmp_path / "pairs.txt"
        pairs_file.write_text("missing_a.png missing_b.png\n")
        dataset = ImagePairDataset(str(tmp_path), str(pairs_file))
        with pytest.raises(ValueError):
            dataset[0]


if __name__ == "__main__":
    pytest.main([__file__])
