"""Object detection using MediaPipe Tasks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import numpy as np

from object_labeler.detection.objects import Detection, crop_detection

try:
    import mediapipe as mp
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False
    mp = None

logger = logging.getLogger(__name__)


class MediaPipeObjectDetector:
    """Generic object detector backed by a MediaPipe ``.tflite`` model.

    MediaPipe image-mode detection does not track objects between frames, so
    every detection carries ``tracking_id=None`` and the recognizer matches it
    on every frame.
    """

    def __init__(
        self,
        model_path: Path,
        score_threshold: float = 0.5,
        max_results: int = 5,
    ) -> None:
        """Initialize the detector.

        Args:
            model_path: Path to a MediaPipe object detection model.
            score_threshold: Minimum category score to keep a detection.
            max_results: Maximum detections returned per frame.
        """
        if not MEDIAPIPE_AVAILABLE:
            raise ImportError("MediaPipe is required for object detection. Install with: pip install mediapipe")
        if not Path(model_path).exists():
            raise FileNotFoundError(f"Object detection model not found: {model_path}")

        options = mp.tasks.vision.ObjectDetectorOptions(
            base_options=mp.tasks.BaseOptions(model_asset_path=str(model_path)),
            running_mode=mp.tasks.vision.RunningMode.IMAGE,
            score_threshold=score_threshold,
            max_results=max_results,
        )
        self._detector = mp.tasks.vision.ObjectDetector.create_from_options(options)

    def detect_objects(self, image: np.ndarray) -> List[Detection]:
        """Detect objects in an RGB image.

        Args:
            image: RGB image as numpy array (H, W, 3), float32 [0,1] or uint8.

        Returns:
            Detections with their cropped regions attached.
        """
        if image.dtype != np.uint8:
            image_uint8 = np.rint(np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
        else:
            image_uint8 = image
        image_uint8 = np.ascontiguousarray(image_uint8[..., :3])

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image_uint8)
        result = self._detector.detect(mp_image)

        detections: List[Detection] = []
        for item in result.detections:
            bbox = item.bounding_box
            box = (
                bbox.origin_x,
                bbox.origin_y,
                bbox.origin_x + bbox.width,
                bbox.origin_y + bbox.height,
            )
            labels = [c.category_name for c in item.categories if c.category_name]
            confidence = item.categories[0].score if item.categories else 0.0
            detections.append(Detection(
                bounding_box=box,
                labels=labels,
                tracking_id=None,
                cropped_image=crop_detection(image_uint8, box),
                confidence=confidence,
            ))

        logger.debug("Detected %d objects", len(detections))
        return detections

    def close(self) -> None:
        self._detector.close()
