"""Image loading and processing utilities."""

from __future__ import annotations

import io
from typing import Union

import numpy as np
from PIL import Image


def load_image_as_array(image_data: Union[bytes, str, np.ndarray]) -> np.ndarray:
    """Load an image and return as RGB float32 array normalized to [0, 1].

    Args:
        image_data: Image bytes, file path, or existing numpy array.

    Returns:
        RGB image as float32 array with shape (H, W, 3) and values in [0, 1].
    """
    if isinstance(image_data, np.ndarray):
        if image_data.dtype == np.uint8:
            return image_data.astype(np.float32) / 255.0
        elif image_data.size and image_data.max() > 1.0:
            return image_data.astype(np.float32) / 255.0
        return image_data.astype(np.float32)

    if isinstance(image_data, bytes):
        img = Image.open(io.BytesIO(image_data))
    else:
        img = Image.open(image_data)

    if img.mode != "RGB":
        img = img.convert("RGB")

    return np.array(img, dtype=np.float32) / 255.0


def array_to_image(image: np.ndarray) -> Image.Image:
    """Convert a [0, 1] float or uint8 RGB array to a PIL image."""
    if image.dtype != np.uint8:
        image = np.rint(np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
    return Image.fromarray(image[..., :3])
