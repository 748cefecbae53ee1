"""Shared configuration for the custom object labeler."""

import logging
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
APP_DATA_DIR = Path(os.getenv("OBJECT_LABELER_DATA_DIR", PROJECT_ROOT / "app_data"))
LABEL_STORE_PATH = APP_DATA_DIR / "custom_labels.json"
DETECTOR_MODEL_PATH = Path(
    os.getenv("OBJECT_LABELER_DETECTOR_MODEL", PROJECT_ROOT / "models" / "efficientdet_lite0.tflite")
)
DETECTOR_SCORE_THRESHOLD = float(os.getenv("OBJECT_LABELER_DETECTOR_SCORE", "0.5"))
DETECTOR_MAX_RESULTS = int(os.getenv("OBJECT_LABELER_DETECTOR_MAX_RESULTS", "5"))
SIMILARITY_THRESHOLD = float(os.getenv("OBJECT_LABELER_SIMILARITY_THRESHOLD", "0.85"))
BINS_PER_CHANNEL = int(os.getenv("OBJECT_LABELER_BINS", "4"))
RECOGNITION_WORKERS = int(os.getenv("OBJECT_LABELER_WORKERS", "2"))
LIVE_SAMPLE_INTERVAL_SECONDS = 0.5
LOG_LEVEL = os.getenv("OBJECT_LABELER_LOG_LEVEL", "INFO")

APP_DATA_DIR.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
