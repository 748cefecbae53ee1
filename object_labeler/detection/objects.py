"""Detection value types produced by the object detector."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

UNKNOWN_CATEGORY = "Unknown"


@dataclass
class Detection:
    """One object reported by the detector in a single frame."""

    bounding_box: Tuple[int, int, int, int]  # (x1, y1, x2, y2)
    labels: List[str] = field(default_factory=list)
    tracking_id: Optional[int] = None
    cropped_image: Optional[np.ndarray] = None
    confidence: float = 0.0

    @property
    def category(self) -> str:
        """The detector's top label, used to scope label matching."""
        return self.labels[0] if self.labels else UNKNOWN_CATEGORY


def crop_detection(image: np.ndarray, box: Tuple[int, int, int, int]) -> Optional[np.ndarray]:
    """Crop ``box`` out of ``image``, clamped to the image bounds.

    The crop is at least one pixel wide and tall. Returns None when the box
    lies entirely outside the image.
    """
    img_h, img_w = image.shape[:2]
    x1, y1, x2, y2 = (int(round(v)) for v in box)

    left = max(0, x1)
    top = max(0, y1)
    if left >= img_w or top >= img_h or x2 <= 0 or y2 <= 0:
        return None
    right = min(img_w, max(x2, left + 1))
    bottom = min(img_h, max(y2, top + 1))

    return image[top:bottom, left:right]
