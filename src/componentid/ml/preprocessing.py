"""Image preprocessing: decode uploads and build the model input tensor.

The model expects an SxSx3 float32 tensor with values in [0, 1]. Images are
stretched to SxS with bilinear interpolation (no crop, no letterbox) and
divided by 255.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps

from componentid.errors import InvalidInputError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

DEFAULT_INPUT_SIZE: int = 224


class ImagePreprocessor:
    """Converts raw RGB images into model input tensors."""

    def __init__(self, input_size: int = DEFAULT_INPUT_SIZE, max_image_pixels: int | None = None) -> None:
        if input_size < 1:
            raise ValueError(f"input_size must be positive, got {input_size}")
        self._input_size = input_size
        self._max_image_pixels = max_image_pixels

    @property
    def input_size(self) -> int:
        return self._input_size

    def decode_image(self, image_bytes: bytes) -> NDArray[np.uint8]:
        """Decode raw image bytes into an RGB uint8 numpy array.

        Args:
            image_bytes: Raw file bytes (any format Pillow can open).

        Returns:
            HxWx3 RGB uint8 numpy array, EXIF orientation applied.

        Raises:
            InvalidInputError: If the bytes are empty, cannot be decoded, or
                the image exceeds the pixel limit.
        """
        if not image_bytes:
            raise InvalidInputError("Image data is empty")

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                width, height = img.size
                if self._max_image_pixels is not None and width * height > self._max_image_pixels:
                    raise InvalidInputError(
                        f"Image is {width}x{height}, exceeding the limit of {self._max_image_pixels} pixels"
                    )
                oriented = ImageOps.exif_transpose(img)
                rgb = oriented.convert("RGB")
        except InvalidInputError:
            raise
        except Exception as exc:
            raise InvalidInputError(f"Cannot decode image: {exc}") from exc

        return np.asarray(rgb, dtype=np.uint8)

    def preprocess(self, image: NDArray[np.uint8] | None) -> NDArray[np.float32]:
        """Resize and normalize an image for the classifier.

        Args:
            image: HxWx3 RGB array with components in [0, 255].

        Returns:
            SxSx3 float32 array with values in [0, 1].

        Raises:
            InvalidInputError: If the image is absent, not HxWx3, has a
                zero dimension, or does not hold integer pixel values.
        """
        if image is None:
            raise InvalidInputError("No image supplied")

        pixels = np.asarray(image)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise InvalidInputError(f"Expected an HxWx3 image, got shape {pixels.shape}")

        height, width = pixels.shape[:2]
        if width == 0 or height == 0:
            raise InvalidInputError(f"Image has zero size ({width}x{height})")

        if not np.issubdtype(pixels.dtype, np.integer):
            raise InvalidInputError(f"Expected integer pixel values, got dtype {pixels.dtype}")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)

        size = self._input_size
        resized = Image.fromarray(np.ascontiguousarray(pixels)).resize(
            (size, size), Image.Resampling.BILINEAR
        )
        tensor = np.asarray(resized, dtype=np.float32) / 255.0
        logger.debug("Preprocessed %dx%d image to %s", width, height, tensor.shape)
        return tensor
