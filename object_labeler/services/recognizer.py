"""High level recognition service built on top of the label store."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

from object_labeler.detection.objects import Detection
from object_labeler.services.feature_extractor import extract_color_histogram
from object_labeler.services.label_matcher import LabelMatcher
from object_labeler.services.recognition_cache import CachedLabel, RecognitionCache
from object_labeler.storage.label_store import LabelRecord, LabelStore, LabelStoreError

logger = logging.getLogger(__name__)


@dataclass
class LabeledDetection:
    """A detection with the label that should be displayed for it."""

    detection: Detection
    label: str
    is_custom_label: bool = False
    record_id: Optional[int] = None
    similarity: Optional[float] = None


class DetectionRecognizer:
    """Relabels detections with custom names, caching results per tracking id.

    ``resolve`` is meant to run off the interactive thread (see
    ``resolve_async``); ``save_label``/``delete_label`` are called from the
    interactive thread and update the cache before returning, so the next
    frame sees the change.
    """

    def __init__(
        self,
        label_store: LabelStore,
        similarity_threshold: float = 0.85,
        bins: int = 4,
        max_workers: int = 2,
    ) -> None:
        self._label_store = label_store
        self._bins = bins
        self._matcher = LabelMatcher(
            lookup_by_category=label_store.get_by_category,
            similarity_threshold=similarity_threshold,
        )
        self._cache = RecognitionCache()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="recognition")

    @property
    def cache(self) -> RecognitionCache:
        return self._cache

    def start_session(self) -> None:
        """Begin a new camera session; tracking ids from the last one are void."""
        self._cache = RecognitionCache()
        logger.info("Started new recognition session")

    def end_session(self) -> None:
        self._cache.clear()
        logger.info("Ended recognition session")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def cached_label(self, tracking_id: Optional[int]) -> Optional[CachedLabel]:
        if tracking_id is None:
            return None
        return self._cache.get(tracking_id)

    def existing_record_id(self, tracking_id: Optional[int]) -> Optional[int]:
        entry = self.cached_label(tracking_id)
        return entry.record_id if entry else None

    def resolve_async(self, detections: Sequence[Detection]) -> "Future[List[LabeledDetection]]":
        return self._executor.submit(self.resolve, detections)

    def resolve(self, detections: Sequence[Detection]) -> List[LabeledDetection]:
        return [self.resolve_one(detection) for detection in detections]

    def resolve_one(self, detection: Detection) -> LabeledDetection:
        cache = self._cache
        tracking_id = detection.tracking_id
        category = detection.category

        try:
            if tracking_id is not None:
                cached = cache.invalidate_if_stale(tracking_id, self._record_exists)
                if cached is not None:
                    logger.debug("Cache hit for tracking id %d: %r", tracking_id, cached.custom_name)
                    return LabeledDetection(
                        detection=detection,
                        label=cached.custom_name,
                        is_custom_label=True,
                        record_id=cached.record_id,
                    )

            if detection.cropped_image is None:
                return LabeledDetection(detection=detection, label=category)

            features = extract_color_histogram(detection.cropped_image, bins=self._bins)
            match = self._matcher.match(category, features)
        except LabelStoreError as exc:
            logger.warning("Label store unavailable, showing %r as generic: %s", category, exc)
            return LabeledDetection(detection=detection, label=category)

        if match is None:
            return LabeledDetection(detection=detection, label=category)

        record = match.record
        logger.debug("Matched %r to label %d (similarity %.3f)", category, record.id, match.similarity)
        name, record_id = record.custom_name, record.id
        if tracking_id is not None:
            entry = cache.populate(tracking_id, name, record_id)
            name, record_id = entry.custom_name, entry.record_id
        return LabeledDetection(
            detection=detection,
            label=name,
            is_custom_label=True,
            record_id=record_id,
            similarity=match.similarity,
        )

    def save_label(
        self,
        detection: Detection,
        custom_name: str,
        record_id: Optional[int] = None,
    ) -> LabelRecord:
        """Store ``custom_name`` for the object in ``detection``.

        Passing the ``record_id`` of an existing label renames it and replaces
        its fingerprint instead of creating a second record.
        """
        if detection.cropped_image is None:
            raise ValueError("Cannot label a detection without a cropped image")
        features = extract_color_histogram(detection.cropped_image, bins=self._bins)
        record = self._label_store.save_label(
            category=detection.category,
            custom_name=custom_name,
            features=features,
            record_id=record_id,
        )
        if detection.tracking_id is not None:
            self._cache.put(detection.tracking_id, record.custom_name, record.id)
        return record

    def delete_label(self, record_id: int, tracking_id: Optional[int] = None) -> None:
        """Delete a stored label and forget it for ``tracking_id``.

        Other tracking ids still pointing at the record are dropped lazily
        the next time they are resolved.
        """
        self._label_store.delete_by_id(record_id)
        if tracking_id is not None:
            self._cache.remove(tracking_id)

    def _record_exists(self, entry: CachedLabel) -> bool:
        return self._label_store.contains(entry.record_id)
