import numpy as np

from object_labeler.detection.objects import Detection, crop_detection
from object_labeler.detection.tracker import IoUTracker, box_iou


def test_category_defaults_to_unknown():
    assert Detection(bounding_box=(0, 0, 1, 1)).category == "Unknown"
    assert Detection(bounding_box=(0, 0, 1, 1), labels=["Food", "Fruit"]).category == "Food"


def test_crop_is_clamped_to_image():
    image = np.arange(10 * 8 * 3, dtype=np.uint8).reshape(10, 8, 3)
    crop = crop_detection(image, (-5, 2, 4, 20))
    assert crop.shape == (8, 4, 3)
    assert np.array_equal(crop, image[2:10, 0:4])


def test_degenerate_box_gives_one_pixel_crop():
    image = np.zeros((10, 10, 3), dtype=np.uint8)
    assert crop_detection(image, (3, 3, 3, 3)).shape == (1, 1, 3)


def test_box_outside_image_gives_no_crop():
    image = np.zeros((10, 10, 3), dtype=np.uint8)
    assert crop_detection(image, (20, 20, 30, 30)) is None
    assert crop_detection(image, (-10, -10, -2, -2)) is None


def test_box_iou():
    assert box_iou((0, 0, 10, 10), (0, 0, 10, 10)) == 1.0
    assert box_iou((0, 0, 10, 10), (20, 20, 30, 30)) == 0.0
    assert abs(box_iou((0, 0, 10, 10), (5, 0, 15, 10)) - 50 / 150) < 1e-9


def test_tracker_keeps_ids_for_overlapping_boxes():
    tracker = IoUTracker()
    first = tracker.update([
        Detection(bounding_box=(0, 0, 10, 10), labels=["cup"]),
        Detection(bounding_box=(50, 50, 60, 60), labels=["cup"]),
    ])
    second = tracker.update([
        Detection(bounding_box=(51, 51, 61, 61), labels=["cup"]),
        Detection(bounding_box=(1, 1, 11, 11), labels=["cup"]),
        Detection(bounding_box=(100, 100, 110, 110), labels=["cup"]),
    ])
    assert [d.tracking_id for d in first] == [1, 2]
    assert [d.tracking_id for d in second] == [2, 1, 3]


def test_tracker_does_not_match_across_categories():
    tracker = IoUTracker()
    tracker.update([Detection(bounding_box=(0, 0, 10, 10), labels=["cup"])])
    result = tracker.update([Detection(bounding_box=(0, 0, 10, 10), labels=["bottle"])])
    assert result[0].tracking_id == 2


def test_tracker_drops_lost_tracks():
    tracker = IoUTracker(max_missed=1)
    tracker.update([Detection(bounding_box=(0, 0, 10, 10), labels=["cup"])])
    tracker.update([])
    tracker.update([])
    result = tracker.update([Detection(bounding_box=(0, 0, 10, 10), labels=["cup"])])
    assert result[0].tracking_id == 2

