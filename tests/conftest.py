"""Shared fixtures for ImageSort tests."""

import json
import threading
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from imagesort.labels import LabelTable


class FakeOracle:
    """Oracle returning fixed scores, or scores computed from the decoded input."""

    def __init__(self, scores):
        self.scores = scores
        self.calls = 0
        self.closed = False
        self._lock = threading.Lock()

    def evaluate(self, image):
        with self._lock:
            self.calls += 1
        scores = self.scores(image) if callable(self.scores) else self.scores
        return np.asarray(scores, dtype=np.float32)

    def close(self):
        self.closed = True


def make_image(path: Path, color=(128, 128, 128), size=(64, 64)) -> Path:
    """Write a small solid-color image; the format follows the suffix."""
    fmt = "JPEG" if path.suffix.lower() in (".jpg", ".jpeg") else "PNG"
    Image.new("RGB", size, color).save(path, fmt)
    return path


def make_corrupt(path: Path) -> Path:
    path.write_bytes(b"not an image")
    return path


@pytest.fixture
def labels():
    """The two-label table used by the end-to-end examples."""
    return LabelTable(["cat", "dog"])


@pytest.fixture
def labels_file(tmp_path):
    path = tmp_path / "labels.json"
    path.write_text(json.dumps({"0": "cat", "1": "dog"}))
    return path


@pytest.fixture
def photo(tmp_path):
    watched = tmp_path / "inbox"
    watched.mkdir()
    return make_image(watched / "photo.png")
