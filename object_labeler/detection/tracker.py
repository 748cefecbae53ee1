"""Assigns per-session tracking ids to detections by box overlap."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, Tuple

from object_labeler.detection.objects import Detection

Box = Tuple[int, int, int, int]


def box_iou(a: Box, b: Box) -> float:
    """Intersection over union of two (x1, y1, x2, y2) boxes."""
    xi1, yi1 = max(a[0], b[0]), max(a[1], b[1])
    xi2, yi2 = min(a[2], b[2]), min(a[3], b[3])
    wi, hi = xi2 - xi1, yi2 - yi1
    if wi <= 0 or hi <= 0:
        return 0.0
    intersection = wi * hi
    area_a = (a[2] - a[0]) * (a[3] - a[1])
    area_b = (b[2] - b[0]) * (b[3] - b[1])
    union = area_a + area_b - intersection
    return intersection / union if union > 0 else 0.0


@dataclass
class _Track:
    box: Box
    category: str
    missed: int = 0


class IoUTracker:
    """Greedy IoU tracker for detectors that do not track on their own.

    A detection keeps the id of the same-category track it overlaps most
    (above ``match_threshold``); unmatched detections open new tracks.
    Tracks unseen for more than ``max_missed`` frames are dropped. Ids are
    only unique within one tracker; a new session uses a new tracker and ids
    are reused from 1.
    """

    def __init__(self, match_threshold: float = 0.3, max_missed: int = 30) -> None:
        self.match_threshold = match_threshold
        self.max_missed = max_missed
        self._tracks: Dict[int, _Track] = {}
        self._next_id = 1

    def update(self, detections: Sequence[Detection]) -> List[Detection]:
        pairs = []
        for det_index, detection in enumerate(detections):
            for track_id, track in self._tracks.items():
                if track.category != detection.category:
                    continue
                iou = box_iou(detection.bounding_box, track.box)
                if iou > self.match_threshold:
                    pairs.append((iou, det_index, track_id))
        pairs.sort(key=lambda item: item[0], reverse=True)

        assigned: Dict[int, int] = {}
        used_tracks = set()
        for _, det_index, track_id in pairs:
            if det_index in assigned or track_id in used_tracks:
                continue
            assigned[det_index] = track_id
            used_tracks.add(track_id)

        tracked: List[Detection] = []
        for det_index, detection in enumerate(detections):
            track_id = assigned.get(det_index)
            if track_id is None:
                track_id = self._next_id
                self._next_id += 1
            self._tracks[track_id] = _Track(box=detection.bounding_box, category=detection.category)
            used_tracks.add(track_id)
            tracked.append(replace(detection, tracking_id=track_id))

        for track_id in list(self._tracks):
            if track_id in used_tracks:
                continue
            track = self._tracks[track_id]
            track.missed += 1
            if track.missed > self.max_missed:
                del self._tracks[track_id]

        return tracked
