import numpy as np
import pytest

from object_labeler.storage.label_store import LabelStore


def make_solid_image(color, width=10, height=10):
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


@pytest.fixture
def solid_image():
    return make_solid_image


@pytest.fixture
def label_store(tmp_path):
    return LabelStore(tmp_path / "custom_labels.json")
