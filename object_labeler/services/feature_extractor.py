"""Colour-histogram fingerprints and cosine similarity for detection crops."""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np
from PIL import Image

ImageLike = Union[Image.Image, np.ndarray]


def _as_rgb_uint8(image: ImageLike) -> np.ndarray:
    """Return an (H, W, 3) uint8 view of ``image`` with values in [0, 255]."""
    if isinstance(image, Image.Image):
        if image.mode != "RGB":
            image = image.convert("RGB")
        return np.asarray(image, dtype=np.uint8)

    array = np.asarray(image)
    if array.ndim == 2:
        array = np.stack([array] * 3, axis=-1)
    if array.ndim != 3 or array.shape[2] < 3:
        raise ValueError(f"Expected an RGB image, got array with shape {array.shape}")
    array = array[..., :3]

    if array.dtype == np.uint8:
        return array
    # Float crops follow the [0, 1] convention used by load_image_as_array.
    if np.issubdtype(array.dtype, np.floating) and array.size and array.max() <= 1.0:
        array = array * 255.0
    return np.clip(np.rint(array), 0, 255).astype(np.uint8)


def extract_color_histogram(image: ImageLike, bins: int = 4) -> np.ndarray:
    """Extract a normalised ``bins**3`` RGB colour histogram from ``image``.

    Each channel is quantised into ``bins`` equal-width buckets. The bucket
    indices are combined as ``r * bins**2 + g * bins + b`` and the counts are
    divided by the pixel count so the histogram sums to 1. An image with no
    pixels yields the all-zero vector.

    Args:
        image: PIL image or numpy array (H, W, 3). uint8 arrays are read as
            [0, 255]; float arrays with values in [0, 1] are rescaled. A float
            array in the [0, 255] range whose maximum is at most 1.0 (a nearly
            black crop) is indistinguishable from a [0, 1] image and is
            rescaled too; pass uint8 to avoid that.
        bins: Quantisation buckets per channel.

    Returns:
        Read-only float32 array of length ``bins**3``.
    """
    if bins < 1:
        raise ValueError("bins must be a positive integer")
    total_bins = bins ** 3
    pixels = _as_rgb_uint8(image).reshape(-1, 3)

    histogram = np.zeros(total_bins, dtype=np.float32)
    if len(pixels) > 0:
        bin_size = math.ceil(256 / bins)
        indexes = np.minimum(pixels.astype(np.int64) // bin_size, bins - 1)
        flat = indexes[:, 0] * bins * bins + indexes[:, 1] * bins + indexes[:, 2]
        counts = np.bincount(flat, minlength=total_bins)
        histogram = (counts / len(pixels)).astype(np.float32)

    histogram.setflags(write=False)
    return histogram


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two feature vectors, bounded to [0, 1].

    Vectors of different length are incomparable and score 0, as does any
    vector with zero norm.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        return 0.0

    denominator = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if denominator <= 0.0:
        return 0.0
    similarity = float(np.dot(vec_a, vec_b) / denominator)
    return min(max(similarity, 0.0), 1.0)
