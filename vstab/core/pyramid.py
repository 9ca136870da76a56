"""
Image pyramid and spatial gradient utilities for multi-scale tracking.
"""

import math

import numpy as np

from vstab.core.image import GrayscaleImage


def _downsample(image: GrayscaleImage) -> GrayscaleImage:
    """Halve an image by 2x2 box averaging, replicating the last row/column for odd sizes."""
    src = image.pixels
    pad_y = image.height % 2
    pad_x = image.width % 2
    if pad_x or pad_y:
        src = np.pad(src, ((0, pad_y), (0, pad_x)), mode="edge")

    nh = math.ceil(image.height / 2)
    nw = math.ceil(image.width / 2)
    blocks = src.reshape(nh, 2, nw, 2)
    avg = (blocks[:, 0, :, 0] + blocks[:, 0, :, 1] + blocks[:, 1, :, 0] + blocks[:, 1, :, 1]) * 0.25
    return GrayscaleImage(avg.astype(np.float32).ravel(), nw, nh)


class ImagePyramid:
    """
    Coarse-to-fine stack of downsampled images.

    Level 0 is a copy of the source image; every following level has
    ceil(w/2) x ceil(h/2) pixels of the level before it.

    Example:
        >>> pyr = ImagePyramid.build(GrayscaleImage.new(64, 64), 3)
        >>> [level.width for level in pyr.levels]
        [64, 32, 16]
    """

    def __init__(self, levels: list[GrayscaleImage]):
        self.levels = levels

    @classmethod
    def build(cls, image: GrayscaleImage, levels: int) -> "ImagePyramid":
        """
        Build a pyramid with the given number of levels.

        Args:
            image: Source image (level 0)
            levels: Number of levels; values below 1 produce a single level

        Returns:
            The built pyramid
        """
        stack = [image.copy()]
        for _ in range(1, max(int(levels), 1)):
            stack.append(_downsample(stack[-1]))
        return cls(stack)

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, level: int) -> GrayscaleImage:
        return self.levels[level]

    def __iter__(self):
        return iter(self.levels)


def build_pyramid(image: GrayscaleImage, levels: int) -> list[GrayscaleImage]:
    """Functional form of ImagePyramid.build returning the list of levels."""
    return ImagePyramid.build(image, levels).levels


def compute_gradients(image: GrayscaleImage) -> tuple[np.ndarray, np.ndarray]:
    """
    Compute spatial gradients (Ix, Iy) using central differences.

    Only interior pixels are computed; the one-pixel border stays zero.

    Args:
        image: Source image

    Returns:
        Tuple of (ix, iy) float32 arrays shaped (height, width)
    """
    px = image.pixels
    ix = np.zeros_like(px, dtype=np.float32)
    iy = np.zeros_like(px, dtype=np.float32)
    if image.width < 3 or image.height < 3:
        return ix, iy

    ix[1:-1, 1:-1] = (px[1:-1, 2:] - px[1:-1, :-2]) * 0.5
    iy[1:-1, 1:-1] = (px[2:, 1:-1] - px[:-2, 1:-1]) * 0.5
    return ix, iy
