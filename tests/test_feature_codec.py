import json

import numpy as np
import pytest

from object_labeler.services.feature_codec import FeatureDecodeError, decode_features, encode_features
from object_labeler.services.feature_extractor import extract_color_histogram


def test_round_trip_histogram():
    rng = np.random.default_rng(2)
    image = rng.integers(0, 256, size=(16, 16, 3), dtype=np.uint8)
    histogram = extract_color_histogram(image)
    decoded = decode_features(encode_features(histogram))
    assert decoded.shape == histogram.shape
    assert np.allclose(decoded, histogram, atol=1e-5)


def test_encoding_is_a_json_array():
    assert json.loads(encode_features([0.5, 0.25, 0.25])) == [0.5, 0.25, 0.25]


def test_decoder_accepts_any_length():
    assert len(decode_features("[]")) == 0
    assert len(decode_features(encode_features(np.ones(512) / 512))) == 512


@pytest.mark.parametrize("payload", ["not json", "{\"a\": 1}", "[1, \"x\"]", "[1, null]", "[true]", "3.5", ""])
def test_malformed_payloads_raise_decode_error(payload):
    with pytest.raises(FeatureDecodeError):
        decode_features(payload)


def test_decode_error_is_a_value_error():
    assert issubclass(FeatureDecodeError, ValueError)
