import numpy as np
import pytest

from object_labeler.services.feature_codec import encode_features
from object_labeler.services.feature_extractor import extract_color_histogram
from object_labeler.services.label_matcher import LabelMatcher
from object_labeler.storage.label_store import LabelRecord


def _record(record_id, vector, category="bottle", name=None):
    return LabelRecord(
        id=record_id,
        category=category,
        custom_name=name or f"label-{record_id}",
        feature_vector=encode_features(vector),
    )


def _marker(value, length=64):
    # The first element identifies the record to the scripted similarity function.
    vector = np.zeros(length)
    vector[0] = value
    return vector


def _scripted_matcher(scores, threshold=0.85):
    def similarity(fresh, stored):
        return scores[int(stored[0])]

    return LabelMatcher(lambda category: [], similarity_threshold=threshold, similarity_fn=similarity)


def test_score_at_threshold_is_rejected():
    matcher = _scripted_matcher({1: 0.85})
    assert matcher.find_best_match("bottle", np.zeros(64), [_record(1, _marker(1))]) is None


def test_score_above_threshold_is_selected():
    matcher = _scripted_matcher({1: 0.8500001})
    result = matcher.find_best_match("bottle", np.zeros(64), [_record(1, _marker(1))])
    assert result is not None
    assert result.record.id == 1
    assert result.similarity == pytest.approx(0.8500001)


def test_highest_score_wins_and_ties_keep_first_seen():
    matcher = _scripted_matcher({1: 0.9, 2: 0.95, 3: 0.95, 4: 0.5})
    candidates = [_record(i, _marker(i)) for i in (1, 2, 3, 4)]
    result = matcher.find_best_match("bottle", np.zeros(64), candidates)
    assert result.record.id == 2


def test_empty_candidates_give_no_match():
    matcher = _scripted_matcher({})
    assert matcher.find_best_match("bottle", np.zeros(64), []) is None


def test_other_categories_are_never_matched():
    matcher = _scripted_matcher({1: 0.99})
    candidates = [_record(1, _marker(1), category="cup")]
    assert matcher.find_best_match("bottle", np.zeros(64), candidates) is None


def test_undecodable_records_are_skipped():
    matcher = _scripted_matcher({2: 0.9})
    broken = LabelRecord(id=1, category="bottle", custom_name="broken", feature_vector="{oops")
    result = matcher.find_best_match("bottle", np.zeros(64), [broken, _record(2, _marker(2))])
    assert result.record.id == 2


def test_all_records_undecodable_is_no_match():
    matcher = _scripted_matcher({})
    broken = [
        LabelRecord(id=i, category="bottle", custom_name="broken", feature_vector="nope")
        for i in range(3)
    ]
    assert matcher.find_best_match("bottle", np.zeros(64), broken) is None


def test_records_with_other_dimensionality_are_skipped(solid_image):
    matcher = LabelMatcher(lambda category: [])
    fresh = extract_color_histogram(solid_image((255, 0, 0)))
    old_build = _record(1, extract_color_histogram(solid_image((255, 0, 0)), bins=2))
    assert matcher.find_best_match("bottle", fresh, [old_build]) is None


def test_same_colour_crop_matches(solid_image):
    matcher = LabelMatcher(lambda category: [])
    stored = _record(42, extract_color_histogram(solid_image((255, 0, 0))), name="Rex")
    fresh = extract_color_histogram(solid_image((255, 0, 0)))
    result = matcher.find_best_match("bottle", fresh, [stored])
    assert result.record.custom_name == "Rex"
    assert result.similarity == pytest.approx(1.0)


def test_different_colour_crop_does_not_match(solid_image):
    matcher = LabelMatcher(lambda category: [])
    stored = _record(42, extract_color_histogram(solid_image((255, 0, 0))))
    fresh = extract_color_histogram(solid_image((0, 0, 255)))
    assert matcher.find_best_match("bottle", fresh, [stored]) is None


def test_match_uses_category_lookup(solid_image):
    requested = []
    stored = _record(7, extract_color_histogram(solid_image((0, 255, 0))))

    def lookup(category):
        requested.append(category)
        return [stored]

    matcher = LabelMatcher(lookup)
    result = matcher.match("bottle", extract_color_histogram(solid_image((0, 255, 0))))
    assert requested == ["bottle"]
    assert result.record.id == 7
