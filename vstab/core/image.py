"""
Grayscale working images for the tracking math.

All tracking, pyramid and gradient code operates on GrayscaleImage:
a single-channel float32 raster with luminance normalized to [0, 1].
Reads outside the raster replicate the nearest edge pixel.
"""

import numpy as np

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class GrayscaleImage:
    """
    Single-channel floating point image stored as a flat row-major buffer.

    Attributes:
        data: Flat float32 buffer of length width * height
        width: Image width in pixels
        height: Image height in pixels

    Example:
        >>> img = GrayscaleImage.new(4, 4)
        >>> img.set(2, 3, 0.75)
        >>> img.get(-1, -1) == img.get(0, 0)
        True
    """

    __slots__ = ("data", "width", "height")

    def __init__(self, data, width: int, height: int):
        """
        Wrap an existing luminance buffer.

        Args:
            data: Flat sequence of width * height samples
            width: Image width in pixels
            height: Image height in pixels

        Raises:
            ValueError: If the dimensions are not positive or the buffer
                length does not match width * height
        """
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

        buf = np.asarray(data, dtype=np.float32).ravel()
        if buf.size != width * height:
            raise ValueError(
                f"Buffer length {buf.size} does not match {width}x{height} "
                f"(expected {width * height})"
            )

        self.data = buf
        self.width = width
        self.height = height

    @classmethod
    def new(cls, width: int, height: int) -> "GrayscaleImage":
        """Create a black image."""
        return cls(np.zeros(int(width) * int(height), dtype=np.float32), width, height)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "GrayscaleImage":
        """Create an image from a 2-D (height, width) array."""
        array = np.asarray(array, dtype=np.float32)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D array, got shape {array.shape}")
        h, w = array.shape
        return cls(array.copy().ravel(), w, h)

    @property
    def pixels(self) -> np.ndarray:
        """The buffer as a (height, width) view."""
        return self.data.reshape(self.height, self.width)

    @property
    def shape(self) -> tuple[int, int]:
        """(height, width), numpy order."""
        return (self.height, self.width)

    def get(self, x: int, y: int) -> float:
        """Read a pixel, clamping coordinates to the nearest edge."""
        x = min(max(int(x), 0), self.width - 1)
        y = min(max(int(y), 0), self.height - 1)
        return float(self.data[y * self.width + x])

    def set(self, x: int, y: int, value: float) -> None:
        """Write a pixel; writes outside the image are ignored."""
        if 0 <= x < self.width and 0 <= y < self.height:
            self.data[int(y) * self.width + int(x)] = value

    def copy(self) -> "GrayscaleImage":
        return GrayscaleImage(self.data.copy(), self.width, self.height)

    def __repr__(self) -> str:
        return f"GrayscaleImage({self.width}x{self.height})"


def rgb_to_gray(rgba, width: int, height: int) -> "GrayscaleImage":
    """
    Convert interleaved 8-bit RGBA data to a grayscale image.

    Partial frames degrade to black: any pixel whose R, G and B bytes are
    not all present in the buffer is left at zero. Bytes past
    width * height * 4 are ignored.

    Args:
        rgba: RGBA bytes, flat or (height, width, 4) uint8 array
        width: Frame width in pixels
        height: Frame height in pixels

    Returns:
        GrayscaleImage with luminance in [0, 1]
    """
    if isinstance(rgba, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(rgba, dtype=np.uint8)
    else:
        buf = np.asarray(rgba, dtype=np.uint8).ravel()

    size = int(width) * int(height)
    gray = GrayscaleImage.new(width, height)

    # Pixel i is usable when byte 4*i + 2 (blue) exists
    available = min(size, max(0, (buf.size + 1) // 4))
    if available == 0:
        return gray

    padded = np.zeros(available * 4, dtype=np.float32)
    n = min(buf.size, available * 4)
    padded[:n] = buf[:n]
    px = padded.reshape(available, 4)

    r, g, b = LUMA_WEIGHTS
    gray.data[:available] = (r * px[:, 0] + g * px[:, 1] + b * px[:, 2]) / 255.0
    return gray
