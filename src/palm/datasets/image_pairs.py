import os
import cv2
import numpy as np
from typing import Callable, List, Optional, Tuple

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff')


class ImagePairDataset:
    """
    Image pairs for descriptor comparison (e.g. genuine/impostor palm pairs)

    Pairs are read from a text file with one "image1 image2 [label]" entry per
    line, or formed from consecutive images of the directory.
    """

    def __init__(self,
                 data_dir: str,
                 image_pairs_file: Optional[str] = None,
                 color: bool = False,
                 transform: Optional[Callable] = None):
        """
        Initialize image pair dataset

        Args:
            data_dir: Directory containing the images
            image_pairs_file: Text file listing image pairs
            color: Load images as BGR instead of grayscale
            transform: Optional callable applied to each loaded sample
        """
        self.data_dir = data_dir
        self.color = color
        self.transform = transform

        if image_pairs_file:
            self.image_pairs = self._load_image_pairs(image_pairs_file)
        else:
            self.image_pairs = self._discover_image_pairs()

    def _load_image_pairs(self, pairs_file: str) -> List[Tuple[str, str, Optional[int]]]:
        """Load image pairs from file"""
        pairs = []
        with open(pairs_file, 'r') as f:
            for line in f:
                parts = line.split()
                if not parts or parts[0].startswith('#'):
                    continue
                if len(parts) not in (2, 3):
                    raise ValueError(f"Malformed pair line: {line.strip()!r}")
                label = int(parts[2]) if len(parts) == 3 else None
                pairs.append((parts[0], parts[1], label))
        return pairs

    def _discover_image_pairs(self) -> List[Tuple[str, str, Optional[int]]]:
        """Pair consecutive images of the directory"""
        image_files = sorted([f for f in os.listdir(self.data_dir)
                              if f.lower().endswith(IMAGE_EXTENSIONS)])

        pairs = []
        for i in range(0, len(image_files) - 1, 2):
            pairs.append((image_files[i], image_files[i + 1], None))

        return pairs

    def load_image(self, name: str) -> np.ndarray:
        path = os.path.join(self.data_dir, name)
        flags = cv2.IMREAD_COLOR if self.color else cv2.IMREAD_GRAYSCALE
        image = cv2.imread(path, flags)
        if image is None:
            raise ValueError(f"Could not load image: {path}")
        return image

    def __len__(self):
        return len(self.image_pairs)

    def __getitem__(self, idx):
        name1, name2, label = self.image_pairs[idx]

        sample = {
            'image1': self.load_image(name1),
            'image2': self.load_image(name2),
            'label': label,
            'pair_id': idx,
            'image1_path': os.path.join(self.data_dir, name1),
            'image2_path': os.path.join(self.data_dir, name2)
        }

        if self.transform:
            sample = self.transform(sample)

        return sample


class ImagePairTransforms:
    """Common transforms for image pair samples"""

    @staticmethod
    def illumination(illumination_filter):
        """Replace color images by their illumination-invariant grayscale version"""
        def _illumination(sample):
            sample['image1'] = illumination_filter.apply(sample['image1'])
            sample['image2'] = illumination_filter.apply(sample['image2'])
            return sample
        return _illumination

    @staticmethod
    def resize(target_size=(256, 256)):
        """Resize images to target size (width, height)"""
        def _resize(sample):
            sample['image1'] = cv2.resize(sample['image1'], target_size, interpolation=cv2.INTER_AREA)
            sample['image2'] = cv2.resize(sample['image2'], target_size, interpolation=cv2.INTER_AREA)
            return sample
        return _resize

    @staticmethod
    def compose(*transforms):
        def _compose(sample):
            for transform in transforms:
                sample = transform(sample)
            return sample
        return _compose
