"""Streamlit entrypoint for the custom object labeler."""

from __future__ import annotations

import io
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any, List, Optional, cast

import numpy as np
import streamlit as st
from PIL import Image, ImageDraw, ImageFont

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

try:
    import av
    from streamlit_webrtc import VideoProcessorBase, WebRtcMode, webrtc_streamer

    STREAMLIT_WEBRTC_AVAILABLE = True
except ImportError:
    VideoProcessorBase = cast(Any, object)
    WebRtcMode = None
    webrtc_streamer = None
    STREAMLIT_WEBRTC_AVAILABLE = False

from object_labeler.config import (
    BINS_PER_CHANNEL,
    DETECTOR_MAX_RESULTS,
    DETECTOR_MODEL_PATH,
    DETECTOR_SCORE_THRESHOLD,
    LABEL_STORE_PATH,
    LIVE_SAMPLE_INTERVAL_SECONDS,
    RECOGNITION_WORKERS,
    SIMILARITY_THRESHOLD,
    configure_logging,
)
from object_labeler.detection.mediapipe_detector import MediaPipeObjectDetector
from object_labeler.detection.tracker import IoUTracker
from object_labeler.services.recognizer import DetectionRecognizer, LabeledDetection
from object_labeler.storage.label_store import LabelStore, LabelStoreError
from object_labeler.utils.image_utils import array_to_image, load_image_as_array

configure_logging()
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Object Labeler", page_icon="🏷️", layout="wide")

RTC_CONFIGURATION = {
    "iceServers": [{"urls": ["stun:stun.l.google.com:19302"]}],
}

CUSTOM_COLOR = (76, 175, 80)
GENERIC_COLOR = (255, 255, 255)


@st.cache_resource(show_spinner="Loading object detector…")
def load_services() -> tuple[LabelStore, DetectionRecognizer, MediaPipeObjectDetector]:
    label_store = LabelStore(LABEL_STORE_PATH)
    recognizer = DetectionRecognizer(
        label_store=label_store,
        similarity_threshold=SIMILARITY_THRESHOLD,
        bins=BINS_PER_CHANNEL,
        max_workers=RECOGNITION_WORKERS,
    )
    detector = MediaPipeObjectDetector(
        model_path=DETECTOR_MODEL_PATH,
        score_threshold=DETECTOR_SCORE_THRESHOLD,
        max_results=DETECTOR_MAX_RESULTS,
    )
    return label_store, recognizer, detector


label_store, recognizer, detector = load_services()


if STREAMLIT_WEBRTC_AVAILABLE:

    class LiveLabelingProcessor(VideoProcessorBase):
        """Runs detection and recognition on the WebRTC worker thread."""

        def __init__(self, sample_interval: float = LIVE_SAMPLE_INTERVAL_SECONDS) -> None:
            self._sample_interval = max(0.1, sample_interval)
            self._last_timestamp = 0.0
            self._tracker = IoUTracker()
            self._pending = None
            self._lock = threading.Lock()
            self._results: List[LabeledDetection] = []
            recognizer.start_session()

        @property
        def last_results(self) -> List[LabeledDetection]:
            with self._lock:
                return list(self._results)

        def recv(self, frame):  # type: ignore[override]
            rgb = frame.to_ndarray(format="rgb24")
            now = time.time()
            if self._pending is not None and self._pending.done():
                try:
                    results = self._pending.result()
                except Exception:
                    logger.exception("Recognition pass failed")
                    results = []
                with self._lock:
                    self._results = results
                self._pending = None
            if self._pending is None and now - self._last_timestamp >= self._sample_interval:
                detections = self._tracker.update(detector.detect_objects(rgb))
                self._pending = recognizer.resolve_async(detections)
                self._last_timestamp = now

            annotated = _draw_detections(Image.fromarray(rgb), self.last_results)
            return av.VideoFrame.from_ndarray(np.asarray(annotated), format="rgb24")

        def on_ended(self) -> None:
            recognizer.end_session()


def _load_font() -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 16)
    except OSError:
        return ImageFont.load_default()


def _draw_detections(img: Image.Image, results: List[LabeledDetection]) -> Image.Image:
    """Draw bounding boxes and labels; custom labels are green."""
    img = img.convert("RGB")
    draw = ImageDraw.Draw(img)
    font = _load_font()

    for result in results:
        x1, y1, x2, y2 = result.detection.bounding_box
        color = CUSTOM_COLOR if result.is_custom_label else GENERIC_COLOR
        draw.rectangle([x1, y1, x2, y2], outline=color, width=3)

        text_bbox = draw.textbbox((x1, y1 - 20), result.label, font=font)
        draw.rectangle([text_bbox[0] - 2, text_bbox[1] - 2, text_bbox[2] + 2, text_bbox[3] + 2], fill=(0, 0, 0))
        draw.text((x1, y1 - 20), result.label, fill=color, font=font)

    return img


def _image_bytes(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def _render_sidebar() -> None:
    st.sidebar.header("Custom labels")
    records = sorted(label_store.get_all(), key=lambda record: (record.category, record.custom_name))
    if not records:
        st.sidebar.info("No custom labels saved yet.")
        return
    for record in records:
        col1, col2 = st.sidebar.columns([4, 1])
        col1.write(f"**{record.custom_name}** · {record.category}")
        if col2.button("🗑️", key=f"sidebar_delete_{record.id}"):
            try:
                recognizer.delete_label(record.id)
            except LabelStoreError as exc:
                st.sidebar.error(f"Could not delete label: {exc}")
            else:
                st.rerun()


def _label_form(result: LabeledDetection, key: str) -> None:
    """Save, rename or delete the custom label of one detection."""
    detection = result.detection
    record_id = result.record_id or recognizer.existing_record_id(detection.tracking_id)
    title = f"{result.label} ({detection.category})" if result.is_custom_label else detection.category

    with st.expander(f"🏷️ {title}", expanded=False):
        if detection.cropped_image is not None:
            st.image(array_to_image(detection.cropped_image), width=120)
        name = st.text_input(
            "Custom name",
            value=result.label if result.is_custom_label else "",
            key=f"{key}_name",
        )
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Save", key=f"{key}_save", disabled=not name.strip() or detection.cropped_image is None):
                try:
                    record = recognizer.save_label(detection, name, record_id=record_id)
                except LabelStoreError as exc:
                    st.error(f"Could not save label: {exc}")
                else:
                    st.success(f"Saved custom label '{record.custom_name}'.")
        with col2:
            if st.button("Delete", key=f"{key}_delete", disabled=record_id is None):
                try:
                    recognizer.delete_label(record_id, detection.tracking_id)
                except LabelStoreError as exc:
                    st.error(f"Could not delete label: {exc}")
                else:
                    st.success("Custom label deleted.")


def _identify_section() -> None:
    st.subheader("Label objects in a photo")
    source = st.radio("Select input source", ["Upload", "Camera"], horizontal=True)

    image_bytes: Optional[bytes] = None
    if source == "Upload":
        uploaded = st.file_uploader("Upload an image", type=["png", "jpg", "jpeg"])
        if uploaded is not None:
            image_bytes = uploaded.getvalue()
    else:
        camera_capture = st.camera_input("Capture a photo", key="identification_camera")
        if camera_capture is not None:
            image_bytes = camera_capture.getvalue()

    if image_bytes is None:
        return

    with st.spinner("Detecting objects..."):
        image_array = load_image_as_array(image_bytes)
        detections = detector.detect_objects(image_array)
        results = recognizer.resolve(detections)

    if not results:
        st.warning("No objects detected in the image.")
        return

    annotated = _draw_detections(Image.open(io.BytesIO(image_bytes)), results)
    st.image(_image_bytes(annotated), caption=f"Detected {len(results)} object(s)")
    st.divider()
    for index, result in enumerate(results):
        _label_form(result, key=f"photo_{index}")


def _live_section() -> None:
    st.subheader("Label objects live")
    if not STREAMLIT_WEBRTC_AVAILABLE or webrtc_streamer is None or WebRtcMode is None:
        st.warning("Install the optional dependency 'streamlit-webrtc' to enable live labeling.")
        return

    context = webrtc_streamer(
        key="live_labeling",
        mode=WebRtcMode.SENDRECV,
        rtc_configuration=RTC_CONFIGURATION,
        media_stream_constraints={"video": True, "audio": False},
        async_processing=True,
        video_processor_factory=LiveLabelingProcessor,
    )

    if not context.state.playing or context.video_processor is None:
        st.caption("Press START above to begin live labeling.")
        return

    results = context.video_processor.last_results
    if not results:
        st.info("🔄 Waiting for detections…")
    for result in results:
        _label_form(result, key=f"live_{result.detection.tracking_id}")


_render_sidebar()
tabs = st.tabs(["Photo", "Live Video"])
with tabs[0]:
    _identify_section()
with tabs[1]:
    _live_section()
