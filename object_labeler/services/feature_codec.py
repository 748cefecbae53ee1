"""Serialisation of feature vectors for storage inside label records.

The encoded form is a plain JSON array of floats. Records written by earlier
builds depend on it, so the format must stay stable.
"""

from __future__ import annotations

import json
import math
from numbers import Real
from typing import Sequence

import numpy as np


class FeatureDecodeError(ValueError):
    """Raised when a stored feature vector cannot be parsed."""


def encode_features(features: Sequence[float]) -> str:
    vector = np.asarray(features, dtype=np.float32).ravel()
    return json.dumps(vector.tolist())


def decode_features(payload: str) -> np.ndarray:
    try:
        values = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise FeatureDecodeError(f"Stored features are not valid JSON: {exc}") from exc

    if not isinstance(values, list):
        raise FeatureDecodeError(f"Expected a JSON array, got {type(values).__name__}")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
            raise FeatureDecodeError(f"Invalid feature element: {value!r}")

    vector = np.asarray(values, dtype=np.float32)
    vector.setflags(write=False)
    return vector
